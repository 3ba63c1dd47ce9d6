"""Cost basis tracking for the commingled Taxable category (average cost)."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class TaxableBasis:
    principal: float = 0.0

    def add(self, amount: float) -> None:
        """Record after-tax money entering the account."""
        if amount > 0:
            self.principal += amount

    def withdraw(self, amount: float, total_before: float) -> float:
        """Apply a withdrawal and return the realized gain in it.

        The withdrawn dollars carry basis in proportion ``principal / total``.
        """
        if amount <= 0 or total_before <= 0:
            return 0.0
        basis_ratio = min(1.0, self.principal / total_before)
        basis_used = amount * basis_ratio
        self.principal = max(0.0, self.principal - basis_used)
        return max(0.0, amount - basis_used)
