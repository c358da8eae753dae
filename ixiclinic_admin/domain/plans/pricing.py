"""
Plan catalogue and price expansion.

BASE_PLANS holds one monthly-priced entry per product tier. The catalogue the
dashboard works with is the expansion of every entry into monthly, quarterly
and annual variants.
"""

from typing import Mapping, Sequence, Union

from ...schemas import Plan

# cycle -> (months billed, multiplier on the monthly total)
BILLING_CYCLES = {
    "monthly": (1, 1.0),
    "quarterly": (3, 0.95),  # 5% off
    "annual": (12, 0.83),  # 17% off
}

BASE_PLANS = {
    "PERSONAL_BASIC": {
        "name": "Personal Basic",
        "price": 29.99,
        "type": "personal",
        "tier": "basic",
        "limits": {"patients": 500, "users": 1, "storage": 5},
        "features": ["patients", "appointments", "invoices"],
    },
    "PERSONAL_PRO": {
        "name": "Personal Pro",
        "price": 49.99,
        "type": "personal",
        "tier": "pro",
        "limits": {"patients": 2000, "users": 2, "storage": 20},
        "features": ["patients", "appointments", "invoices", "prescriptions", "reports"],
    },
    "CLINIC_PRO": {
        "name": "Clinic Pro",
        "price": 99.99,
        "type": "clinic",
        "tier": "pro",
        "popular": True,
        "limits": {"patients": 10000, "users": 10, "storage": 100},
        "features": ["patients", "appointments", "invoices", "prescriptions", "reports", "multi_user"],
    },
    "CLINIC_ENTERPRISE": {
        "name": "Clinic Enterprise",
        "price": 199.99,
        "type": "clinic",
        "tier": "enterprise",
        "limits": {"patients": 50000, "users": 25, "storage": 500},
        "features": [
            "patients",
            "appointments",
            "invoices",
            "prescriptions",
            "reports",
            "multi_user",
            "priority_support",
        ],
    },
    "HOSPITAL_ENTERPRISE": {
        "name": "Hospital Enterprise",
        "price": 499.99,
        "type": "hospital",
        "tier": "enterprise",
        "limits": {"patients": 250000, "users": 100, "storage": 2000},
        "features": [
            "patients",
            "appointments",
            "invoices",
            "prescriptions",
            "reports",
            "multi_user",
            "priority_support",
            "api_access",
        ],
    },
}

DEFAULT_PRICING_CONFIG = {
    "currency": "USD",
    "taxRate": 0.16,  # ITBIS
    "discountRules": {
        "annual": 16.67,
        "volume": [
            {"minUsers": 5, "discount": 5},
            {"minUsers": 10, "discount": 10},
            {"minUsers": 25, "discount": 15},
            {"minUsers": 50, "discount": 20},
        ],
    },
}


def plan_name(key: str, cycle: str) -> str:
    """PERSONAL_BASIC + annual -> personal-basic-annual"""
    return f"{key.lower().replace('_', '-')}-{cycle}"


def cycle_price(monthly_price: float, cycle: str) -> float:
    months, multiplier = BILLING_CYCLES[cycle]
    return round(monthly_price * months * multiplier, 2)


def expand_plan_configs(base_plans: Union[Mapping[str, dict], Sequence[dict]] = BASE_PLANS) -> list[Plan]:
    """
    Expand base plan definitions into one priced plan per billing cycle.

    `base_plans` is a mapping of plan key -> definition, or a list of
    definitions keyed by their `name`. Only the annual variant keeps the
    `popular` flag.
    """
    if isinstance(base_plans, Mapping):
        entries = list(base_plans.items())
    else:
        entries = [(config["name"], config) for config in base_plans]

    plans: list[Plan] = []
    for key, config in entries:
        price = config.get("price")
        monthly_price = price if isinstance(price, (int, float)) else 0

        for cycle in BILLING_CYCLES:
            plans.append(
                Plan(
                    name=plan_name(key, cycle),
                    price=cycle_price(monthly_price, cycle),
                    type=config.get("type"),
                    tier=config.get("tier"),
                    billing=cycle,
                    features=list(config.get("features", [])),
                    limits=config.get("limits") or {},
                    popular=bool(config.get("popular")) if cycle == "annual" else False,
                    description=config.get("name"),
                )
            )
    return plans


def volume_discount(user_count: int, rules: Sequence[dict]) -> float:
    """Discount percentage of the largest volume tier `user_count` reaches"""
    matching = [rule for rule in rules if user_count >= rule["minUsers"]]
    if not matching:
        return 0
    return max(matching, key=lambda rule: rule["minUsers"])["discount"]
