from abc import ABC, abstractmethod
from collections.abc import Iterable
from uuid import UUID

from form3115_preparer.domain.entities import Client, DcnReference, Filing
from form3115_preparer.domain.value_objects import DcnCategory, FilingStatus


class ClientRepository(ABC):
    @abstractmethod
    def add(self, client: Client) -> None:
        pass

    @abstractmethod
    def get(self, client_id: UUID) -> Client | None:
        pass

    @abstractmethod
    def list_by_owner(self, owner_id: str) -> Iterable[Client]:
        pass

    @abstractmethod
    def update(self, client: Client) -> None:
        pass

    @abstractmethod
    def delete(self, client_id: UUID) -> None:
        """Delete a client together with all of its filings."""
        pass


class FilingRepository(ABC):
    @abstractmethod
    def add(self, filing: Filing) -> None:
        pass

    @abstractmethod
    def get(self, filing_id: UUID) -> Filing | None:
        pass

    @abstractmethod
    def list_by_client(self, client_id: UUID) -> Iterable[Filing]:
        pass

    @abstractmethod
    def list_by_owner(
        self, owner_id: str, status: FilingStatus | None = None
    ) -> Iterable[Filing]:
        """Filings of every client the owner holds, most recently updated first."""
        pass

    @abstractmethod
    def update(self, filing: Filing) -> None:
        pass

    @abstractmethod
    def delete(self, filing_id: UUID) -> None:
        pass


class DcnReferenceRepository(ABC):
    @abstractmethod
    def upsert(self, reference: DcnReference) -> bool:
        """Insert or update by change number. Returns True when a row was created."""
        pass

    @abstractmethod
    def get_by_number(self, dcn_number: str) -> DcnReference | None:
        pass

    @abstractmethod
    def list_all(self) -> Iterable[DcnReference]:
        pass

    @abstractmethod
    def list_by_category(self, category: DcnCategory) -> Iterable[DcnReference]:
        pass

    @abstractmethod
    def search(self, query: str) -> Iterable[DcnReference]:
        """Case-insensitive substring match over change number and description."""
        pass
