# Overview: Read hooks exposing data / loading / error / refetch over the service layer.

"""
Data-access hooks.

Each ``use_*`` factory wraps one service read in a :class:`Query`. A query
fetches immediately, keeps the last good ``data`` on failure, records the
exception in ``error`` and queues an error notification. ``refetch()``
re-runs the fetch; overlapping refetches are not coordinated.
"""
from __future__ import annotations

from typing import Any, Callable

from sqlalchemy.exc import SQLAlchemyError

from . import notifications
from .extensions import db
from .services import (
    products_service,
    reporting_service,
    role_service,
    sales_service,
    store_service,
    user_service,
)


class Query:
    def __init__(
        self,
        fetcher: Callable[..., Any],
        *args: Any,
        error_title: str = "Error al cargar datos",
        initial: Any = None,
        **kwargs: Any,
    ):
        self._fetcher = fetcher
        self._args = args
        self._kwargs = kwargs
        self.error_title = error_title
        self.data = initial
        self.error: Exception | None = None
        self.loading = False
        self.refetch()

    def refetch(self) -> "Query":
        self.loading = True
        try:
            self.data = self._fetcher(*self._args, **self._kwargs)
            self.error = None
        except SQLAlchemyError as exc:
            db.session.rollback()
            self._fail(exc)
        except Exception as exc:
            self._fail(exc)
        finally:
            self.loading = False
        return self

    def _fail(self, exc: Exception) -> None:
        self.error = exc
        notifications.error(self.error_title, exc)

    @property
    def ok(self) -> bool:
        return self.error is None

    def as_dict(self) -> dict:
        return {
            "data": self.data,
            "loading": self.loading,
            "error": str(self.error) if self.error else None,
        }


def use_stores() -> Query:
    return Query(store_service.list_store_dicts, error_title="Error al cargar sucursales", initial=[])


def use_products(store_id: str = "all") -> Query:
    return Query(products_service.list_products, store_id, error_title="Error al cargar productos", initial=[])


def use_users_and_roles() -> Query:
    return Query(user_service.fetch_users_with_roles, error_title="Error al recuperar datos de usuario", initial=[])


def use_user_roles(user_id: str) -> Query:
    return Query(role_service.fetch_user_roles, user_id, error_title="Error al cargar roles", initial=[])


def use_sales(limit: int = 10) -> Query:
    return Query(sales_service.fetch_sales, limit, error_title="Error al cargar el historial de ventas", initial=[])


def use_dashboard_stats() -> Query:
    return Query(
        reporting_service.dashboard_stats,
        error_title="Error al cargar estadísticas del dashboard",
        initial=reporting_service.empty_dashboard_stats(),
    )
