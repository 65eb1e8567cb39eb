from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List

from openbook.core.errors import PlanNotFound


@dataclass(frozen=True)
class MiningPlan:
    id: str
    name: str
    cycle_days: int
    min_amount: Decimal
    max_amount: Decimal
    daily_rate: Decimal
    abort_fee: Decimal = Decimal("0.05")

    def accepts(self, amount: Decimal) -> bool:
        return self.min_amount <= amount <= self.max_amount

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "cycleDays": self.cycle_days,
            "min": float(self.min_amount),
            "max": float(self.max_amount),
            "dailyRate": float(self.daily_rate),
            "abortFee": float(self.abort_fee),
        }


PLANS: Dict[str, MiningPlan] = {
    plan.id: plan
    for plan in (
        MiningPlan("m1", "AI Strategic Vault Prime", 120, Decimal("200000"), Decimal("99999999"), Decimal("0.043")),
        MiningPlan("m2", "AI Momentum Vault Pro", 60, Decimal("80000"), Decimal("99999999"), Decimal("0.031")),
        MiningPlan("m3", "AI Quant Core Vault", 30, Decimal("50000"), Decimal("99999999"), Decimal("0.028")),
        MiningPlan("m4", "AI Dynamic Yield Vault", 10, Decimal("10000"), Decimal("999999"), Decimal("0.02")),
        MiningPlan("m5", "AI Smart Start Vault", 5, Decimal("3000"), Decimal("999999"), Decimal("0.015")),
    )
}


def list_plans() -> List[MiningPlan]:
    return list(PLANS.values())


def get_plan(plan_id: str) -> MiningPlan:
    plan = PLANS.get(str(plan_id or "").strip())
    if plan is None:
        raise PlanNotFound()
    return plan
