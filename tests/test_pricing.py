import pytest

from ixiclinic_admin.domain.plans.pricing import (
    BASE_PLANS,
    DEFAULT_PRICING_CONFIG,
    cycle_price,
    expand_plan_configs,
    plan_name,
    volume_discount,
)
from ixiclinic_admin.domain.plans.store import PlanNotFoundError, PlansStore


def test_basic_plan_expands_into_three_cycles():
    plans = expand_plan_configs({"BASIC": {"name": "Basic", "price": 100, "type": "personal", "tier": "basic"}})

    assert [(p.name, p.billing, p.price) for p in plans] == [
        ("basic-monthly", "monthly", 100),
        ("basic-quarterly", "quarterly", 285),
        ("basic-annual", "annual", 996),
    ]
    assert all(p.description == "Basic" for p in plans)


def test_only_annual_variant_keeps_popular_flag():
    plans = expand_plan_configs({"CLINIC_PRO": BASE_PLANS["CLINIC_PRO"]})

    assert {p.billing: p.popular for p in plans} == {"monthly": False, "quarterly": False, "annual": True}


def test_list_input_is_keyed_by_name():
    plans = expand_plan_configs([{"name": "Starter", "price": 10}])

    assert [p.name for p in plans] == ["starter-monthly", "starter-quarterly", "starter-annual"]


def test_non_numeric_price_expands_to_zero():
    plans = expand_plan_configs({"FREE": {"name": "Free", "price": "n/a"}})

    assert [p.price for p in plans] == [0, 0, 0]


def test_full_catalogue_has_three_variants_per_plan():
    plans = expand_plan_configs()

    assert len(plans) == len(BASE_PLANS) * 3
    names = {p.name for p in plans}
    assert "personal-basic-monthly" in names
    assert "hospital-enterprise-annual" in names


def test_plan_name_and_cycle_price():
    assert plan_name("PERSONAL_BASIC", "annual") == "personal-basic-annual"
    assert cycle_price(29.99, "monthly") == 29.99
    assert cycle_price(29.99, "quarterly") == 85.47
    assert cycle_price(29.99, "annual") == 298.7


@pytest.mark.parametrize("key", sorted(BASE_PLANS))
def test_every_base_plan_is_priced_per_cycle(key):
    monthly = BASE_PLANS[key]["price"]
    by_billing = {p.billing: p for p in expand_plan_configs({key: BASE_PLANS[key]})}

    assert by_billing["monthly"].price == round(monthly, 2)
    assert by_billing["quarterly"].price == round(monthly * 3 * 0.95, 2)
    assert by_billing["annual"].price == round(monthly * 12 * 0.83, 2)
    assert {p.name for p in by_billing.values()} == {plan_name(key, c) for c in ("monthly", "quarterly", "annual")}


@pytest.mark.parametrize(
    "users,expected",
    [(1, 0), (4, 0), (5, 5), (9, 5), (10, 10), (30, 15), (50, 20), (500, 20)],
)
def test_volume_discount_uses_highest_tier_reached(users, expected):
    assert volume_discount(users, DEFAULT_PRICING_CONFIG["discountRules"]["volume"]) == expected


def test_calculate_price_applies_volume_discount():
    store = PlansStore(paypal_plan_mapping={})

    assert store.calculate_price("clinic-pro-monthly") == 99.99
    assert store.calculate_price("clinic-pro-monthly", user_count=1) == 99.99
    assert store.calculate_price("clinic-pro-monthly", user_count=10) == 89.99
    assert store.calculate_price("unknown-plan") == 0


def test_store_queries():
    store = PlansStore(paypal_plan_mapping={"personal-basic-monthly": "P-BASIC"})

    assert store.get_plan("personal-basic-monthly").price == 29.99
    assert store.get_plan("nope") is None
    assert {p.type for p in store.get_plans_by_type("clinic")} == {"clinic"}
    assert len(store.get_plans_by_tier("enterprise")) == 6
    assert store.get_paypal_plan_id("personal-basic-monthly") == "P-BASIC"
    assert store.get_paypal_plan_id("personal-pro-monthly") is None
    assert store.get_local_plan_name("P-BASIC") == "personal-basic-monthly"
    assert store.get_local_plan_name("P-OTHER") is None


def test_store_mutations():
    store = PlansStore(paypal_plan_mapping={})

    created = store.create_plan({"price": 15, "type": "personal", "tier": "custom"})
    assert created.name.startswith("custom-")
    with pytest.raises(ValueError):
        store.create_plan({"name": created.name, "price": 1})

    updated = store.update_plan_pricing("personal-basic-monthly", 31.5)
    assert updated.price == 31.5
    assert store.get_plan("personal-basic-monthly").price == 31.5

    store.delete_plan(created.name)
    assert store.get_plan(created.name) is None
    with pytest.raises(PlanNotFoundError):
        store.delete_plan(created.name)


def test_store_persists_and_loads(store):
    plans = PlansStore(paypal_plan_mapping={})
    plans.update_plan_pricing("personal-pro-monthly", 55)
    plans.set_paypal_plan_mapping("personal-pro-monthly", "P-PRO")
    plans.mark_synced("paypal", "out_of_sync")
    plans.save(store)

    loaded = PlansStore(paypal_plan_mapping={})
    assert loaded.load(store)

    assert loaded.get_plan("personal-pro-monthly").price == 55
    assert loaded.get_paypal_plan_id("personal-pro-monthly") == "P-PRO"
    assert loaded.pricing_sync.status == "out_of_sync"
    assert loaded.pricing_sync.source == "paypal"


def test_load_without_persisted_copy(store):
    assert PlansStore().load(store) is False
