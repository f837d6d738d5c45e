class KasbotError(Exception):
    """Base class for errors raised inside the bot core."""


class ClassifierError(KasbotError):
    """A classifier backend failed: timeout, bad status, empty or unparseable reply."""

    def __init__(self, provider: str, message: str):
        super().__init__(f"{provider}: {message}")
        self.provider = provider


class InstallmentNotFound(KasbotError):
    def __init__(self, loan_id: int, installment_no: int):
        super().__init__(f"installment {installment_no} of loan #{loan_id} not found or already paid")
        self.loan_id = loan_id
        self.installment_no = installment_no
