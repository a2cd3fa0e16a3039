import json

import pytest

from packages.ingestion_engine.merchant_extractor import RULES_PATH, MerchantExtractor


@pytest.fixture
def extractor():
    return MerchantExtractor()


def test_extract_known_merchants(extractor):
    assert extractor.extract("WHOLEFDS MKT #10234 AUSTIN TX") == "Whole Foods"
    assert extractor.extract("AMZN Mktp US*2K4L19") == "Amazon"
    assert extractor.extract("UBER   *TRIP HELP.UBER.COM") == "Uber"
    assert extractor.extract("POS 40593845 MCDONALDS") == "McDonalds"


def test_clean_noise_generic(extractor):
    assert extractor.extract("DEBIT CARD PURCHASE CORNER BAKERY #123 05/14") == "Corner Bakery"


def test_fallback_logic(extractor):
    assert extractor.extract("Unknown   Store   123") == "Unknown Store"


def test_empty_input(extractor):
    assert extractor.extract("") == ""


def test_normalize_aliases(extractor):
    assert extractor.normalize("AMZN Mktp US") == "Amazon"
    assert extractor.normalize("starbucks store 42") == "Starbucks"


def test_normalize_title_cases_unknown(extractor):
    assert extractor.normalize("joe's DINER") == "Joe's Diner"
    assert extractor.normalize("") == ""


def test_custom_aliases():
    extractor = MerchantExtractor(aliases={"SQ *": "Square Merchant"})
    assert extractor.normalize("SQ *BLUE BOTTLE") == "Square Merchant"


def test_default_aliases_come_from_rule_table(extractor):
    with open(RULES_PATH, "r", encoding="utf-8") as f:
        table = json.load(f)["merchant_aliases"]

    assert extractor.aliases == table
