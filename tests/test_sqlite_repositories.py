"""Tests for the SQLite repositories."""

import json
from uuid import uuid4

from form3115_preparer.domain.entities import Client, DcnReference, Filing
from form3115_preparer.domain.value_objects import (
    ChangeType,
    DcnCategory,
    EntityType,
    FilingStatus,
    FormPart,
)
from form3115_preparer.reference.dcn_seed import DCN_SEEDS, seed_dcn_references
from form3115_preparer.repositories.sqlite import (
    SQLiteClientRepository,
    SQLiteDatabase,
    SQLiteDcnReferenceRepository,
    SQLiteFilingRepository,
)


class TestSQLiteDatabase:
    def test_initialize_is_idempotent(self, db: SQLiteDatabase) -> None:
        db.initialize()
        tables = {
            row["name"]
            for row in db.get_connection().execute(
                "SELECT name FROM sqlite_master WHERE type = 'table'"
            )
        }
        assert {"clients", "filings", "dcn_references"} <= tables

    def test_file_database(self, tmp_path) -> None:
        path = tmp_path / "filings.db"
        database = SQLiteDatabase(path)
        database.initialize()
        database.close()
        assert path.exists()


class TestClientRepository:
    def test_add_and_get(
        self, client_repo: SQLiteClientRepository, sample_client: Client
    ) -> None:
        client_repo.add(sample_client)
        loaded = client_repo.get(sample_client.id)

        assert loaded is not None
        assert loaded.name == "Acme Widgets, Inc."
        assert loaded.entity_type == EntityType.C_CORP
        assert loaded.zip_code == "62701"
        assert loaded.created_at == sample_client.created_at

    def test_get_missing(self, client_repo: SQLiteClientRepository) -> None:
        assert client_repo.get(uuid4()) is None

    def test_list_by_owner(self, client_repo: SQLiteClientRepository) -> None:
        client_repo.add(Client(name="Mine", owner_id="preparer-1"))
        client_repo.add(Client(name="Theirs", owner_id="preparer-2"))

        names = [c.name for c in client_repo.list_by_owner("preparer-1")]
        assert names == ["Mine"]

    def test_update(
        self, client_repo: SQLiteClientRepository, sample_client: Client
    ) -> None:
        client_repo.add(sample_client)
        sample_client.city = "Chicago"
        sample_client.entity_type = None
        client_repo.update(sample_client)

        loaded = client_repo.get(sample_client.id)
        assert loaded is not None
        assert loaded.city == "Chicago"
        assert loaded.entity_type is None

    def test_delete_cascades_to_filings(
        self,
        client_repo: SQLiteClientRepository,
        filing_repo: SQLiteFilingRepository,
        sample_client: Client,
        sample_filing: Filing,
    ) -> None:
        client_repo.add(sample_client)
        filing_repo.add(sample_filing)

        client_repo.delete(sample_client.id)

        assert client_repo.get(sample_client.id) is None
        assert filing_repo.get(sample_filing.id) is None


class TestFilingRepository:
    def test_payloads_round_trip(
        self,
        client_repo: SQLiteClientRepository,
        filing_repo: SQLiteFilingRepository,
        sample_client: Client,
        sample_filing: Filing,
    ) -> None:
        client_repo.add(sample_client)
        filing_repo.add(sample_filing)

        sample_filing.dcn = "7"
        sample_filing.change_type = ChangeType.AUTOMATIC
        sample_filing.record_part_save(FormPart.PART_II, json.dumps({"dcn": "7"}))
        sample_filing.record_part_save(
            FormPart.SCHEDULE_C, json.dumps({"assetDescription": "Lathe"})
        )
        filing_repo.update(sample_filing)

        loaded = filing_repo.get(sample_filing.id)
        assert loaded is not None
        assert loaded.dcn == "7"
        assert loaded.change_type == ChangeType.AUTOMATIC
        assert loaded.status == FilingStatus.IN_PROGRESS
        assert loaded.last_saved_step == FormPart.SCHEDULE_C
        assert loaded.completion_percentage == 50
        assert loaded.payloads == {
            FormPart.PART_II: '{"dcn": "7"}',
            FormPart.SCHEDULE_C: '{"assetDescription": "Lathe"}',
        }

    def test_unknown_dcn_can_be_stored(
        self,
        client_repo: SQLiteClientRepository,
        filing_repo: SQLiteFilingRepository,
        sample_client: Client,
    ) -> None:
        client_repo.add(sample_client)
        filing = Filing(client_id=sample_client.id, tax_year=2025, dcn="999")
        filing_repo.add(filing)

        loaded = filing_repo.get(filing.id)
        assert loaded is not None
        assert loaded.dcn == "999"

    def test_list_by_owner_and_status(
        self,
        client_repo: SQLiteClientRepository,
        filing_repo: SQLiteFilingRepository,
    ) -> None:
        mine = Client(name="Mine", owner_id="preparer-1")
        theirs = Client(name="Theirs", owner_id="preparer-2")
        client_repo.add(mine)
        client_repo.add(theirs)
        draft = Filing(client_id=mine.id, tax_year=2024)
        done = Filing(client_id=mine.id, tax_year=2025, status=FilingStatus.COMPLETED)
        other = Filing(client_id=theirs.id, tax_year=2025)
        for filing in (draft, done, other):
            filing_repo.add(filing)

        owned = {f.id for f in filing_repo.list_by_owner("preparer-1")}
        assert owned == {draft.id, done.id}

        completed = list(
            filing_repo.list_by_owner("preparer-1", FilingStatus.COMPLETED)
        )
        assert [f.id for f in completed] == [done.id]

    def test_list_by_client(
        self,
        client_repo: SQLiteClientRepository,
        filing_repo: SQLiteFilingRepository,
        sample_client: Client,
        sample_filing: Filing,
    ) -> None:
        client_repo.add(sample_client)
        filing_repo.add(sample_filing)

        filings = list(filing_repo.list_by_client(sample_client.id))
        assert [f.id for f in filings] == [sample_filing.id]

    def test_delete(
        self,
        client_repo: SQLiteClientRepository,
        filing_repo: SQLiteFilingRepository,
        sample_client: Client,
        sample_filing: Filing,
    ) -> None:
        client_repo.add(sample_client)
        filing_repo.add(sample_filing)
        filing_repo.delete(sample_filing.id)
        assert filing_repo.get(sample_filing.id) is None


class TestDcnReferenceRepository:
    def test_seeding_twice_keeps_one_row_per_number(self, db: SQLiteDatabase) -> None:
        repo = SQLiteDcnReferenceRepository(db)

        first = seed_dcn_references(repo)
        second = seed_dcn_references(repo)

        assert first.created == len(DCN_SEEDS)
        assert first.updated == 0
        assert second.created == 0
        assert second.updated == len(DCN_SEEDS)
        assert len(list(repo.list_all())) == len(DCN_SEEDS)

    def test_upsert_updates_existing(self, dcn_repo: SQLiteDcnReferenceRepository) -> None:
        original = dcn_repo.get_by_number("184")
        assert original is not None

        replacement = DcnReference(
            dcn_number="184",
            description="Materials and supplies (revised)",
            category=DcnCategory.TANGIBLE_PROPERTY,
            requires_481a=False,
        )
        created = dcn_repo.upsert(replacement)

        assert created is False
        assert replacement.id == original.id
        loaded = dcn_repo.get_by_number("184")
        assert loaded is not None
        assert loaded.description == "Materials and supplies (revised)"
        assert loaded.requires_481a is False

    def test_schedule_flags_round_trip(
        self, dcn_repo: SQLiteDcnReferenceRepository
    ) -> None:
        reference = dcn_repo.get_by_number("64")
        assert reference is not None
        assert reference.is_automatic is False
        assert reference.requires_schedule_e is True
        assert reference.rev_proc == "Rev. Proc. 2025-23"
        assert reference.rev_proc_section == "Rev. Proc. 2025-23, Section 25.01"

    def test_search_escapes_wildcards(self, db: SQLiteDatabase) -> None:
        repo = SQLiteDcnReferenceRepository(db)
        repo.upsert(
            DcnReference(
                dcn_number="900",
                description="Deduct 100% of costs",
                category=DcnCategory.OTHER,
            )
        )
        repo.upsert(
            DcnReference(
                dcn_number="901",
                description="Deduct 1000 of costs",
                category=DcnCategory.OTHER,
            )
        )

        assert [r.dcn_number for r in repo.search("100%")] == ["900"]
