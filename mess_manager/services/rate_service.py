from decimal import Decimal

from sqlalchemy.orm import Session

from mess_manager.core.exceptions import NotFoundException
from mess_manager.models.meal import MealType
from mess_manager.models.mess import Mess
from mess_manager.repositories.expense_repository import ExpenseRepository
from mess_manager.repositories.mess_repository import MessRepository


class RateService:
    """Read-only view over the per-mess price table"""

    def __init__(self, db: Session):
        self.db = db
        self.mess_repo = MessRepository(db)
        self.expense_repo = ExpenseRepository(db)

    def _get_mess(self, mess_id: int) -> Mess:
        mess = self.mess_repo.get_by_id(mess_id)
        if not mess:
            raise NotFoundException(f"Mess {mess_id} not found")
        return mess

    def rate_for(self, mess_id: int, meal_type: MealType) -> Decimal:
        """
        Current price of one unit of ``meal_type`` in the mess.

        Raises:
            NotFoundException: If the mess doesn't exist
        """
        mess = self._get_mess(mess_id)
        return Decimal(getattr(mess, f"{meal_type.value}_rate"))

    def meal_rates(self, mess: Mess) -> dict[MealType, Decimal]:
        return {meal_type: Decimal(getattr(mess, f"{meal_type.value}_rate")) for meal_type in MealType}

    def category_rates(self, mess_id: int) -> dict[int, Decimal]:
        """Default rate of each active expense category, keyed by category id"""
        self._get_mess(mess_id)
        return {
            category.id: Decimal(category.rate)
            for category in self.expense_repo.get_categories(mess_id)
        }

    def rate_table(self, mess_id: int) -> dict:
        mess = self._get_mess(mess_id)
        rates = self.meal_rates(mess)
        return {
            "breakfast": rates[MealType.BREAKFAST],
            "lunch": rates[MealType.LUNCH],
            "dinner": rates[MealType.DINNER],
            "total_daily": mess.daily_meal_rate(),
            "categories": self.category_rates(mess_id),
        }
