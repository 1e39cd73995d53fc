"""ResolutionSubmitter: Outcome decision and on-chain market resolution.

A market's YES outcome wins if and only if the resolved temperature falls in
the half-open bracket ``[lower_bound, upper_bound)``. The decision is sent to
the MarketFactory as a payout vector: ``[1, 0]`` for YES, ``[0, 1]`` for NO.

Submission:
    1. Estimate gas for ``resolveMarket(conditionId, payouts)``
    2. Add a 25% safety margin (rounded up)
    3. Send the transaction, signed by the oracle account
    4. Wait for the receipt; a failed status counts as a revert

Every failure raises ResolutionError. Nothing is retried here.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING

from web3 import Web3

if TYPE_CHECKING:
    from web3 import AsyncWeb3
    from web3.contract import AsyncContract

logger = logging.getLogger(__name__)

GAS_MARGIN_PERCENT = 125
DEFAULT_CONFIRMATION_TIMEOUT = 180.0


class ResolutionError(Exception):
    """Raised when a market could not be resolved on-chain."""

    pass


class Outcome(str, Enum):
    """Winning side of a bracket market."""

    YES = "YES"
    NO = "NO"

    @property
    def payouts(self) -> list[int]:
        """Payout vector in [YES, NO] order."""
        return [1, 0] if self is Outcome.YES else [0, 1]


@dataclass(frozen=True)
class ResolutionResult:
    """Audit record of a resolved market.

    :ivar condition_id: Resolved market.
    :ivar temperature: Temperature the market was resolved with, degrees F.
    :ivar outcome: Winning side.
    :ivar tx_hash: Hash of the resolution transaction.
    """

    condition_id: str
    temperature: float
    outcome: Outcome
    tx_hash: str


def determine_outcome(temperature: float, lower_bound: float, upper_bound: float) -> Outcome:
    """Decide the winning side for a temperature and bracket.

    :param temperature: Resolved temperature.
    :param lower_bound: Inclusive lower bound.
    :param upper_bound: Exclusive upper bound.
    :returns: Outcome.YES if lower_bound <= temperature < upper_bound.

    .. code-block:: python

        >>> determine_outcome(70, 70, 80)
        <Outcome.YES: 'YES'>
        >>> determine_outcome(80, 70, 80)
        <Outcome.NO: 'NO'>
    """
    if lower_bound <= temperature < upper_bound:
        return Outcome.YES
    return Outcome.NO


def apply_gas_margin(estimate: int, margin_percent: int = GAS_MARGIN_PERCENT) -> int:
    """Scale a gas estimate by a percentage, rounding up.

    :param estimate: Gas estimate from the node.
    :param margin_percent: Percentage to apply (125 = +25%).
    :returns: Gas limit.
    """
    return -(-estimate * margin_percent // 100)


class ResolutionSubmitter:
    """Submits market resolutions to the MarketFactory contract.

    :ivar w3: AsyncWeb3 connection, or None when no RPC is configured.
    :ivar contract: MarketFactory contract, or None when not configured.
    :ivar account_address: Oracle account sending the transactions.
    :ivar confirmation_timeout: Seconds to wait for a receipt.
    :ivar gas_margin_percent: Gas limit as a percentage of the estimate.
    """

    def __init__(
        self,
        w3: AsyncWeb3 | None,
        contract: AsyncContract | None,
        account_address: str | None,
        confirmation_timeout: float = DEFAULT_CONFIRMATION_TIMEOUT,
        gas_margin_percent: int = GAS_MARGIN_PERCENT,
    ) -> None:
        """Initialize the submitter.

        :param w3: AsyncWeb3 connection.
        :param contract: MarketFactory contract handle.
        :param account_address: Address of the signing oracle account.
        :param confirmation_timeout: Receipt wait in seconds (default: 180).
        :param gas_margin_percent: Gas margin percentage (default: 125).
        :raises ValueError: If the margin would lower the estimate.
        """
        if gas_margin_percent < 100:
            raise ValueError("gas_margin_percent must be at least 100")

        self.w3 = w3
        self.contract = contract
        self.account_address = account_address
        self.confirmation_timeout = confirmation_timeout
        self.gas_margin_percent = gas_margin_percent

    async def resolve_market(
        self,
        condition_id: str,
        temperature: float,
        lower_bound: int,
        upper_bound: int,
    ) -> str:
        """Decide the outcome and resolve the market on-chain.

        :param condition_id: 0x-prefixed bytes32 condition id.
        :param temperature: Aggregated temperature, degrees F.
        :param lower_bound: Inclusive bracket lower bound.
        :param upper_bound: Exclusive bracket upper bound.
        :returns: Transaction hash as 0x-prefixed hex.
        :raises ResolutionError: If configuration is missing, gas estimation
            fails, the transaction is rejected or reverts, or confirmation
            times out.
        """
        if self.w3 is None or self.contract is None:
            raise ResolutionError("MarketFactory contract is not configured")
        if not self.account_address:
            raise ResolutionError("ORACLE_PRIVATE_KEY is required to resolve markets")

        outcome = determine_outcome(temperature, lower_bound, upper_bound)
        payouts = outcome.payouts

        logger.info(f"Resolving market {condition_id}")
        logger.info(f"  Temperature: {temperature}F, Bracket: [{lower_bound}, {upper_bound})")
        logger.info(f"  Outcome: {outcome.value} wins (payouts: {payouts})")

        call = self.contract.functions.resolveMarket(condition_id, payouts)

        try:
            gas_estimate = await call.estimate_gas({"from": self.account_address})
        except Exception as e:
            raise ResolutionError(f"Gas estimation failed for {condition_id}: {e}") from e

        gas_limit = apply_gas_margin(gas_estimate, self.gas_margin_percent)
        logger.debug(f"Gas estimate: {gas_estimate}, using limit: {gas_limit}")

        try:
            tx_hash = await call.transact({"from": self.account_address, "gas": gas_limit})
        except Exception as e:
            raise ResolutionError(f"Transaction rejected for {condition_id}: {e}") from e

        tx_hex = Web3.to_hex(tx_hash)
        logger.info(f"Transaction submitted: {tx_hex}")

        try:
            receipt = await self.w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=self.confirmation_timeout
            )
        except Exception as e:
            raise ResolutionError(f"Confirmation failed for {tx_hex}: {e}") from e

        if receipt["status"] != 1:
            raise ResolutionError(
                f"Transaction {tx_hex} reverted in block {receipt['blockNumber']}"
            )

        logger.info(f"Market resolved in block {receipt['blockNumber']}")
        return tx_hex

    async def check_wallet_balance(self) -> Decimal:
        """Return the oracle wallet balance in ETH.

        :raises ResolutionError: If no connection or account is configured.
        """
        if self.w3 is None or not self.account_address:
            raise ResolutionError("RPC endpoint and oracle account are required")
        balance_wei = await self.w3.eth.get_balance(self.account_address)
        return Decimal(Web3.from_wei(balance_wei, "ether"))
