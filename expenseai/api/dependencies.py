"""
FastAPI dependencies.

The storage backend is resolved once per request; every dependency that
asks for it within that request receives the same object.
"""

from fastapi import Depends, Request

from expenseai.config import Settings
from expenseai.orchestrator import AppComponents, BudgetFlow, ExpenseFlow, InsightFlow
from expenseai.services.storage import ExpenseStorageInterface


def get_components(request: Request) -> AppComponents:
    return request.app.state.components


def get_app_settings(components: AppComponents = Depends(get_components)) -> Settings:
    return components.settings


def get_storage(components: AppComponents = Depends(get_components)) -> ExpenseStorageInterface:
    return components.manager.current()


def get_expense_flow(components: AppComponents = Depends(get_components)) -> ExpenseFlow:
    return components.expense_flow


def get_insight_flow(components: AppComponents = Depends(get_components)) -> InsightFlow:
    return components.insight_flow


def get_budget_flow(components: AppComponents = Depends(get_components)) -> BudgetFlow:
    return components.budget_flow
