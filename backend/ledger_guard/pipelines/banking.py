"""
Bank transaction, inter-account transfer and bank account pipelines.

Banking checks are mostly policy: double-entry integrity, fraud ceilings,
overdraft floors and the approval threshold for large transfers.
"""

from ledger_guard.errors import FormatViolationError
from ledger_guard.financial_precision import validate_positive, validate_precision
from ledger_guard.models import BankAccount, BankTransaction, InterAccountTransfer
from ledger_guard.pipelines.base import CollectionPipeline, register_pipeline
from ledger_guard.state_machine_wiring import BANK_TRANSACTION, TRANSFER
from ledger_guard.validators import is_valid_account_number

ACCOUNT_TYPES = ("current", "savings")


@register_pipeline
class BankTransactionPipeline(CollectionPipeline):
    collection = "bank_transactions"
    entity = "bank transaction"
    model = BankTransaction

    async def check(self, ctx, transaction: BankTransaction, previous):
        ctx.policy.check_double_entry(transaction.debit_amount, transaction.credit_amount)
        amount = max(transaction.debit_amount, transaction.credit_amount)
        validate_precision(amount, "Transaction amount")
        ctx.policy.check_transaction_ceiling(amount)
        ctx.policy.check_transaction_overdraft(transaction.balance)

        ctx.machines.get(BANK_TRANSACTION).validate(transaction, previous, ctx.rule_context())


@register_pipeline
class InterAccountTransferPipeline(CollectionPipeline):
    collection = "inter_account_transfers"
    entity = "transfer"
    model = InterAccountTransfer

    async def check(self, ctx, transfer: InterAccountTransfer, previous):
        if transfer.from_account_id == transfer.to_account_id:
            raise FormatViolationError(
                "SECURITY: Cannot transfer to the same account. Self-transfers are prohibited."
            )
        validate_positive(transfer.amount, "Transfer amount")
        ctx.policy.check_transfer_ceiling(transfer.amount)

        ctx.machines.get(TRANSFER).validate(transfer, previous, ctx.rule_context())

        ctx.policy.check_transfer_approval(
            transfer.amount, transfer.status, transfer.approved_by, transfer.approved_at
        )
        if transfer.status in ("approved", "completed"):
            ctx.policy.check_self_approval(
                transfer.approved_by, transfer.initiated_by, "transfers"
            )


@register_pipeline
class BankAccountPipeline(CollectionPipeline):
    collection = "bank_accounts"
    entity = "bank account"
    model = BankAccount

    async def check(self, ctx, account: BankAccount, previous):
        if account.account_type not in ACCOUNT_TYPES:
            raise FormatViolationError(
                f"Invalid accountType '{account.account_type}'. Must be: current or savings"
            )
        if not is_valid_account_number(account.account_number):
            raise FormatViolationError("Account number must be exactly 10 digits")
        ctx.policy.check_account_balance_floor(account.balance)

        await ctx.duplicates.check_natural_key_unique(
            self.collection,
            "accountNumber",
            account.account_number,
            f"Account number '{account.account_number}' already exists",
            exclude_key=ctx.key
        )
