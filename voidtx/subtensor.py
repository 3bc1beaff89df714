"""
Bittensor transfer rail.

Each payment is submitted as its own balances transfer extrinsic signed
by the settlement wallet's coldkey, so one failing recipient does not
revert the others. The chain gives no way to undo a finalized transfer:
this rail is not transactional, and a failed refund leaves the engine to
surface the shortfall.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional

import bittensor as bt
from bittensor.core.extrinsics.pallets import Balances
from bittensor.utils.balance import Balance

from voidtx.rails import TransferOutcome, TransferRail

logger = logging.getLogger(__name__)

# Fallback network fee per transfer when the node returns no payment info.
DEFAULT_FEE_RAO = Balance.from_tao(0.001).rao


class SubtensorRail(TransferRail):
    """
    Transfer rail backed by a Bittensor wallet.

    Parameters:
        wallet_name: Name of the Bittensor wallet holding attached value.
        network: Bittensor network ('finney' for mainnet, 'test' for testnet).
        keep_alive: If True, use transfer_keep_alive to protect existential deposits.
        wait_for_inclusion: Wait for each transfer to be included in a block.
        wait_for_finalization: Wait for each transfer to be finalized.
        subtensor, wallet: Pre-built clients; skip construction when given.
    """

    transactional = False

    def __init__(
        self,
        wallet_name: str = "default",
        network: str = "finney",
        keep_alive: bool = True,
        wait_for_inclusion: bool = True,
        wait_for_finalization: bool = False,
        subtensor: Optional[bt.Subtensor] = None,
        wallet: Optional[bt.Wallet] = None,
    ):
        self.network = network
        self.keep_alive = keep_alive
        self.wait_for_inclusion = wait_for_inclusion
        self.wait_for_finalization = wait_for_finalization
        self.subtensor = subtensor or bt.Subtensor(network=network)
        if wallet is None:
            wallet = bt.Wallet(name=wallet_name)
            wallet.unlock_coldkey()
        self.wallet = wallet

    @property
    def address(self) -> str:
        return self.wallet.coldkeypub.ss58_address

    def balance(self) -> int:
        """Free balance of the settlement wallet, in RAO."""
        return self.subtensor.get_balance(self.address).rao

    def _build_transfer_call(self, recipient: str, amount: int):
        balances = Balances(self.subtensor)
        transfer_fn = "transfer_keep_alive" if self.keep_alive else "transfer_allow_death"
        return getattr(balances, transfer_fn)(dest=recipient, value=amount)

    def transfer(self, recipient: str, amount: int) -> TransferOutcome:
        try:
            call = self._build_transfer_call(recipient, amount)
            response = self.subtensor.sign_and_send_extrinsic(
                call=call,
                wallet=self.wallet,
                wait_for_inclusion=self.wait_for_inclusion,
                wait_for_finalization=self.wait_for_finalization,
            )
        except Exception as e:
            logger.warning("Transfer of %d RAO to %s raised: %s", amount, recipient, e)
            return TransferOutcome.failed(f"transfer exception: {e}")

        if response.success:
            return TransferOutcome.ok(reference=getattr(response, "extrinsic_hash", None))
        return TransferOutcome.failed(response.message or "transfer failed")

    def estimate_fee(self, recipients: Iterable[str], amount: int) -> int:
        """
        Estimate the network fee, in RAO, for one transfer of ``amount`` to
        each recipient. The first transfer is priced and used for all.
        """
        recipients = list(recipients)
        if not recipients:
            return 0
        sample_call = self._build_transfer_call(recipients[0], amount)
        fee_info = self.subtensor.substrate.get_payment_info(
            call=sample_call,
            keypair=self.wallet.coldkey,
        )
        fee_per_transfer = int(fee_info["partial_fee"]) if fee_info else DEFAULT_FEE_RAO
        return fee_per_transfer * len(recipients)
