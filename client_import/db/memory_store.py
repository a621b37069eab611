from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from ..models.execution import UpsertItem, UpsertItemResult, UpsertStatus
from ..models.preview import BaseAction, LookupMatch
from ..services.preview import LookupForbiddenError
from .client_store import NOT_FOUND_MESSAGE, ClientStoreError

"""In-memory client store used in mock mode (DISABLE_DB_CONNECT=1) and tests.

Mirrors PostgresClientStore: lookup by account, positional upsert results,
JSONB-like merge on update. Failures can be injected per account, per call
or for the lookup.
"""

__all__ = ["StoredClient", "InMemoryClientStore"]

logger = logging.getLogger(__name__)

_NESTED_KEYS = ("metrics", "customFields")


@dataclass
class StoredClient:
    client_id: str
    data: dict[str, Any]
    last_import_id: str | None = None
    last_import_row: int | None = None

    @property
    def account_number(self) -> str | None:
        return self.data.get("codigoConta")


@dataclass
class InMemoryClientStore:
    clients: dict[str, StoredClient] = field(default_factory=dict)
    fail_accounts: set[str] = field(default_factory=set)  # items with these accounts get an error result
    fail_on_call: int | None = None  # 1-based upsert call raising ClientStoreError
    forbid_lookup: bool = False
    drop_last_result: bool = False  # simulate a short positional response
    lookup_calls: list[list[str]] = field(default_factory=list)
    upsert_calls: list[list[UpsertItem]] = field(default_factory=list)

    @classmethod
    def with_clients(cls, records: Iterable[dict[str, Any]], **kwargs: Any) -> InMemoryClientStore:
        """Seed the store with payload dicts (camelCase keys, ``id`` optional)."""
        store = cls(**kwargs)
        for record in records:
            data = dict(record)
            client_id = str(data.pop("id", None) or uuid.uuid4().hex)
            store.clients[client_id] = StoredClient(client_id=client_id, data=data)
        return store

    def find_by_account(self, account: str) -> list[StoredClient]:
        return [c for c in self.clients.values() if c.account_number == account]

    async def lookup(self, accounts: list[str]) -> list[LookupMatch]:
        self.lookup_calls.append(list(accounts))
        if self.forbid_lookup:
            raise LookupForbiddenError("permission denied for lookup")
        wanted = set(accounts)
        return [
            LookupMatch.from_dict({**c.data, "accountNumber": c.account_number, "clientId": c.client_id})
            for c in self.clients.values()
            if c.account_number in wanted
        ]

    def _apply(self, item: UpsertItem) -> UpsertItemResult:
        doc = item.data.to_dict()
        account = item.data.codigo_conta
        if account is not None and account in self.fail_accounts:
            return UpsertItemResult(status=UpsertStatus.ERROR.value, error=f"rejected account {account}")

        if item.action is BaseAction.CREATE:
            client = StoredClient(client_id=uuid.uuid4().hex, data=doc)
            self.clients[client.client_id] = client
            status = UpsertStatus.CREATED
        else:
            if item.client_id is not None:
                targets = [self.clients[item.client_id]] if item.client_id in self.clients else []
            else:
                targets = self.find_by_account(account) if account else []
            if len(targets) != 1:
                return UpsertItemResult(status=UpsertStatus.ERROR.value, error=NOT_FOUND_MESSAGE)
            client = targets[0]
            for key, value in doc.items():
                if key in _NESTED_KEYS and isinstance(client.data.get(key), dict):
                    client.data[key] = {**client.data[key], **value}
                else:
                    client.data[key] = value
            status = UpsertStatus.UPDATED

        client.last_import_id = item.import_id
        client.last_import_row = item.row_number
        return UpsertItemResult(status=status.value, client_id=client.client_id)

    async def upsert(self, items: list[UpsertItem]) -> list[UpsertItemResult]:
        self.upsert_calls.append(list(items))
        if self.fail_on_call is not None and len(self.upsert_calls) == self.fail_on_call:
            raise ClientStoreError(f"connection lost on call {self.fail_on_call}")
        results = [self._apply(item) for item in items]
        if self.drop_last_result and results:
            results.pop()
        logger.debug("memory upsert items=%d stored=%d", len(items), len(self.clients))
        return results
