"""Shared fixtures: sample master data and a sample order document."""
import json
import sys
from pathlib import Path

import pytest

# Add backend directory to path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from orderlens.config import Settings
from orderlens.models import MasterCustomer, MasterProduct, Scheme

FIXTURES = Path(__file__).resolve().parent / "fixtures"


def load_fixture(name: str) -> dict:
    with open(FIXTURES / name, "r", encoding="utf-8") as f:
        return json.load(f)


@pytest.fixture
def master_data():
    return load_fixture("master_data.json")


@pytest.fixture
def order_document():
    return load_fixture("order_document.json")


@pytest.fixture
def customers(master_data):
    return [MasterCustomer.model_validate(c) for c in master_data["customers"]]


@pytest.fixture
def products(master_data):
    return [MasterProduct.model_validate(p) for p in master_data["products"]]


@pytest.fixture
def schemes(master_data):
    return [Scheme.model_validate(s) for s in master_data["schemes"]]


@pytest.fixture
def settings():
    """Defaults only, independent of the caller's environment."""
    return Settings(_env_file=None)
