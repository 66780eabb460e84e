"""Gas estimation by transaction simulation.

Estimates are clamped to fixed ceilings (0.05 APT total, 0.1 APT max) and a
failed simulation yields conservative defaults rather than an error.
"""

import logging
import math
from decimal import Decimal

from pydantic import BaseModel

from aptoswap.chain.account import Account
from aptoswap.chain.client import AptosClient
from aptoswap.chain.transactions import RawTransaction, transfer_apt_payload
from aptoswap.tokens import OCTAS_PER_APT, octas_to_apt

logger = logging.getLogger(__name__)

TOTAL_COST_CAP = Decimal("0.05")
MAX_COST_CAP = Decimal("0.1")
DEFAULT_TOTAL_COST = Decimal("0.005")
DEFAULT_MAX_COST = Decimal("0.01")

MAX_GAS_BUFFER = Decimal("1.2")
MAX_GAS_HARD_CAP = 50_000


class GasEstimate(BaseModel):
    """Gas cost in APT, plus the simulation figures it came from."""

    total_cost: Decimal
    max_cost: Decimal
    gas_unit_price: int = 0
    gas_used: int = 0
    max_gas_amount: int = 0
    is_default: bool = False

    @classmethod
    def default(cls) -> "GasEstimate":
        return cls(total_cost=DEFAULT_TOTAL_COST, max_cost=DEFAULT_MAX_COST, is_default=True)

    @property
    def max_cost_octas(self) -> int:
        """Gas reserve to keep back from an APT balance."""
        return math.ceil(self.max_cost * OCTAS_PER_APT)


def estimate_from_simulation(simulation: dict) -> GasEstimate:
    """Derive capped costs from a simulated transaction.

    total = price * used, max = price * min(ceil(max_gas * 1.2), 50000).
    """
    gas_unit_price = int(simulation["gas_unit_price"])
    gas_used = int(simulation["gas_used"])
    max_gas_amount = int(simulation["max_gas_amount"])

    buffered_max_gas = min(math.ceil(Decimal(max_gas_amount) * MAX_GAS_BUFFER), MAX_GAS_HARD_CAP)
    total_cost = octas_to_apt(gas_unit_price * gas_used)
    max_cost = octas_to_apt(gas_unit_price * buffered_max_gas)

    return GasEstimate(
        total_cost=min(total_cost, TOTAL_COST_CAP),
        max_cost=min(max_cost, MAX_COST_CAP),
        gas_unit_price=gas_unit_price,
        gas_used=gas_used,
        max_gas_amount=buffered_max_gas,
    )


class GasEstimator:
    """Simulates transactions to estimate their gas cost."""

    def __init__(self, client: AptosClient):
        self.client = client

    async def estimate(self, transaction: RawTransaction, public_key_hex: str) -> GasEstimate:
        """Estimate gas for a built transaction; defaults on any failure."""
        try:
            simulation = await self.client.simulate(transaction, public_key_hex)
        except Exception as e:
            logger.warning(f"Gas simulation failed, using defaults: {type(e).__name__}: {e}")
            return GasEstimate.default()

        if not simulation.get("success", False):
            logger.warning(
                f"Simulated {transaction.payload.module_function} did not succeed "
                f"({simulation.get('vm_status', 'unknown')}), using default gas"
            )
            return GasEstimate.default()

        try:
            estimate = estimate_from_simulation(simulation)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Malformed simulation result, using default gas: {e}")
            return GasEstimate.default()

        logger.debug(
            f"Gas for {transaction.payload.module_function}: total {estimate.total_cost} APT, "
            f"max {estimate.max_cost} APT"
        )
        return estimate

    async def estimate_network_gas(self, account: Account) -> GasEstimate:
        """Baseline estimate from a 1-octa self transfer."""
        try:
            transaction = await self.client.build_transaction(
                account.address, transfer_apt_payload(account.address, 1)
            )
        except Exception as e:
            logger.warning(f"Could not build baseline gas transaction, using defaults: {e}")
            return GasEstimate.default()
        return await self.estimate(transaction, account.public_key_hex)


def calculate_gas_fee(transaction: dict) -> dict:
    """Gas actually charged by a committed transaction."""
    gas_used = int(transaction.get("gas_used") or 0)
    gas_unit_price = int(transaction.get("gas_unit_price") or 0)
    gas_fee_octas = gas_used * gas_unit_price
    gas_fee_apt = f"{octas_to_apt(gas_fee_octas).normalize():f}"
    return {
        "gas_used": gas_used,
        "gas_unit_price": gas_unit_price,
        "gas_fee_octas": gas_fee_octas,
        "gas_fee_apt": gas_fee_apt,
        "gas_fee_formatted": f"{gas_fee_apt} APT",
    }
