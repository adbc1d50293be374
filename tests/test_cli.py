"""Tests for CLI module."""

from pathlib import Path

import pytest

from form3115_preparer.cli import (
    cmd_calc_481a,
    cmd_dcn_category,
    cmd_dcn_show,
    cmd_init,
    cmd_version,
    get_default_db_path,
    main,
)
from form3115_preparer.domain.entities import Client, Filing
from form3115_preparer.domain.value_objects import FormPart
from form3115_preparer.reference.dcn_seed import DCN_SEEDS
from form3115_preparer.repositories.sqlite import (
    SQLiteClientRepository,
    SQLiteDatabase,
    SQLiteFilingRepository,
)


@pytest.fixture
def seeded_path(tmp_path: Path) -> Path:
    db_path = tmp_path / "f3115.db"
    assert main(["--database", str(db_path), "init"]) == 0
    assert main(["--database", str(db_path), "seed-dcns"]) == 0
    return db_path


class TestGetDefaultDbPath:
    def test_comes_from_settings(self) -> None:
        result = get_default_db_path()

        assert isinstance(result, Path)
        assert result.name == "form3115.db"


class TestCmdInit:
    def test_creates_new_database(self, tmp_path, capsys):
        db_path = tmp_path / "test.db"

        class Args:
            database = str(db_path)
            force = False

        result = cmd_init(Args())

        assert result == 0
        assert db_path.exists()
        captured = capsys.readouterr()
        assert "Initialized database" in captured.out

    def test_refuses_to_overwrite_existing_without_force(self, tmp_path, capsys):
        db_path = tmp_path / "test.db"
        db_path.touch()

        class Args:
            database = str(db_path)
            force = False

        result = cmd_init(Args())

        assert result == 1
        captured = capsys.readouterr()
        assert "already exists" in captured.out

    def test_overwrites_existing_with_force(self, tmp_path, capsys):
        db_path = tmp_path / "test.db"
        db_path.write_text("not a database")

        class Args:
            database = str(db_path)
            force = True

        result = cmd_init(Args())

        assert result == 0
        captured = capsys.readouterr()
        assert "Initialized database" in captured.out


class TestSeedDcns:
    def test_seed_reports_counts(self, tmp_path, capsys):
        db_path = tmp_path / "f3115.db"
        main(["--database", str(db_path), "init"])
        capsys.readouterr()

        assert main(["--database", str(db_path), "seed-dcns"]) == 0
        first = capsys.readouterr().out
        assert main(["--database", str(db_path), "seed-dcns"]) == 0
        second = capsys.readouterr().out

        total = len(DCN_SEEDS)
        assert f"Seeded {total} DCNs from Rev. Proc. 2025-23 ({total} created, 0 updated)" in first
        assert f"(0 created, {total} updated)" in second

    def test_seed_without_database(self, tmp_path, capsys):
        result = main(["--database", str(tmp_path / "missing.db"), "seed-dcns"])

        assert result == 1
        assert "Database not found" in capsys.readouterr().out


class TestDcnCommands:
    def test_show(self, seeded_path, capsys):
        capsys.readouterr()

        class Args:
            database = str(seeded_path)
            number = "7"

        result = cmd_dcn_show(Args())

        assert result == 0
        output = capsys.readouterr().out
        assert "DCN 7: Impermissible to permissible" in output
        assert "Schedules:       Schedule C" in output
        assert "Part IV" in output

    def test_show_unknown(self, seeded_path, capsys):
        capsys.readouterr()
        result = main(["--database", str(seeded_path), "dcn", "show", "999"])

        assert result == 1
        assert "DCN 999 not found" in capsys.readouterr().out

    def test_search(self, seeded_path, capsys):
        capsys.readouterr()
        result = main(["--database", str(seeded_path), "dcn", "search", "lifo"])

        assert result == 0
        lines = capsys.readouterr().out.strip().splitlines()
        assert [line.split()[0] for line in lines] == ["21", "22"]

    def test_search_no_match(self, seeded_path, capsys):
        capsys.readouterr()
        main(["--database", str(seeded_path), "dcn", "search", "zzz"])
        assert "No DCNs match 'zzz'" in capsys.readouterr().out

    def test_category(self, seeded_path, capsys):
        capsys.readouterr()
        result = main(["--database", str(seeded_path), "dcn", "category", "leasing"])

        assert result == 0
        assert "1 DCN(s) in leasing" in capsys.readouterr().out

    def test_unknown_category(self, capsys):
        class Args:
            database = None
            name = "astrology"

        result = cmd_dcn_category(Args())

        assert result == 1
        assert "Error: Unknown category 'astrology'" in capsys.readouterr().out

    def test_dcn_without_subcommand_prints_help(self, capsys):
        result = main(["dcn"])

        assert result == 0
        assert "show" in capsys.readouterr().out


class TestCalc481a:
    def test_four_year_spread(self, capsys):
        class Args:
            present = "100000"
            proposed = "150000"
            spread = 4

        result = cmd_calc_481a(Args())

        assert result == 0
        output = capsys.readouterr().out
        assert "Adjustment:             50,000.00 (positive)" in output
        assert "Year 4: 12,500.00" in output

    def test_bad_amount(self, capsys):
        result = main(["calc-481a", "--present", "lots", "--proposed", "1"])

        assert result == 1
        assert "must be decimal amounts" in capsys.readouterr().out

    def test_large_adjustment_warning(self, capsys):
        main(["calc-481a", "--present", "0", "--proposed", "-20000000"])

        output = capsys.readouterr().out
        assert "(negative)" in output
        assert "Warning: Large adjustment amount" in output

    def test_spread_must_be_one_or_four(self, capsys):
        with pytest.raises(SystemExit):
            main(["calc-481a", "--present", "0", "--proposed", "1", "--spread", "3"])


class TestGeneratePdf:
    def test_writes_pdf(self, seeded_path, template_path, tmp_path, capsys, read_fields):
        db = SQLiteDatabase(str(seeded_path))
        client = Client(name="Acme Widgets, Inc.", owner_id="local", ein="12-3456789")
        filing = Filing(client_id=client.id, tax_year=2025)
        filing.record_part_save(FormPart.PART_III, '{"priorMethodChange": "yes"}')
        SQLiteClientRepository(db).add(client)
        SQLiteFilingRepository(db).add(filing)
        db.close()
        output = tmp_path / "out.pdf"
        capsys.readouterr()

        result = main(
            [
                "--database",
                str(seeded_path),
                "generate-pdf",
                str(filing.id),
                "--owner",
                "local",
                "--template",
                str(template_path),
                "--output",
                str(output),
                "--no-statement",
            ]
        )

        assert result == 0
        assert f"Wrote {output}" in capsys.readouterr().out
        values = read_fields(output.read_bytes())
        assert values["topmostSubform[0].Page1[0].f1_4[0]"] == "12-3456789"
        assert values["topmostSubform[0].Page2[0].c2_11[0]"] == "/Yes"

    def test_unknown_filing(self, seeded_path, capsys):
        capsys.readouterr()
        result = main(
            [
                "--database",
                str(seeded_path),
                "generate-pdf",
                "00000000-0000-0000-0000-000000000000",
            ]
        )

        assert result == 1
        assert "Error: Filing not found" in capsys.readouterr().out

    def test_invalid_filing_id(self, capsys):
        result = main(["generate-pdf", "not-a-uuid"])

        assert result == 1
        assert "Invalid filing ID" in capsys.readouterr().out


class TestVerifyMap:
    def test_complete_template(self, template_path, capsys):
        result = main(["verify-map", "--template", str(template_path)])

        assert result == 0
        assert "All mapped fields exist in the template" in capsys.readouterr().out

    def test_incomplete_template(self, template_builder, capsys):
        template = template_builder(text_fields=["topmostSubform[0].Page1[0].f1_1[0]"])

        result = main(["verify-map", "--template", str(template)])

        assert result == 1
        output = capsys.readouterr().out
        assert "Missing in template" in output
        assert "topmostSubform[0].Page1[0].f1_4[0]" in output

    def test_missing_template(self, tmp_path, capsys):
        result = main(["verify-map", "--template", str(tmp_path / "none.pdf")])

        assert result == 1
        assert "Error: PDF template could not be loaded" in capsys.readouterr().out


class TestCmdVersion:
    def test_prints_version(self, capsys):
        class Args:
            pass

        result = cmd_version(Args())

        assert result == 0
        captured = capsys.readouterr()
        assert "Form 3115 Preparer v0.1.0" in captured.out


class TestMain:
    def test_no_command_prints_help(self, capsys):
        result = main([])

        assert result == 0
        captured = capsys.readouterr()
        assert "usage:" in captured.out.lower()

    def test_version_command(self, capsys):
        result = main(["version"])

        assert result == 0
        captured = capsys.readouterr()
        assert "0.1.0" in captured.out
