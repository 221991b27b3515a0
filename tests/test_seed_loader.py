"""기본 데이터 YAML 로더 테스트"""

import pytest
from datetime import date
from pathlib import Path

from deadline_engine.core import DeadlineService, TaxType, ValidationError
from deadline_engine.core.seed_loader import apply_seed, load_seed_dir, load_seed_file

RULES_DIR = Path(__file__).resolve().parent.parent / "rules"


class TestBundledSeed:
    """기본 제공 시에라리온 규칙 테스트"""

    def test_bundled_file_loads(self):
        seed = load_seed_file(RULES_DIR / "sierra_leone_2025.yaml")

        assert len(seed.rules) == 8
        assert len(seed.holidays) == 8
        assert seed.version == "2025.1"

    def test_apply_seed(self):
        service = DeadlineService()

        counts = apply_seed(service, load_seed_dir(RULES_DIR))

        assert counts == {"rules": 8, "holidays": 8}
        active_types = {rule.tax_type for rule in service.list_active_rules(as_of=date(2025, 1, 1))}
        assert active_types == {
            TaxType.GST,
            TaxType.CORPORATE_INCOME_TAX,
            TaxType.PERSONAL_INCOME_TAX,
            TaxType.PAYE,
            TaxType.PAYROLL_TAX,
            TaxType.EXCISE_DUTY,
            TaxType.WITHHOLDING_TAX,
        }

    def test_seeded_gst_deadline(self):
        """2025-03-31 + 21일 = 2025-04-21 (부활절 월요일) -> 2025-04-22"""
        service = DeadlineService()
        apply_seed(service, load_seed_dir(RULES_DIR))

        result = service.calculate_deadline(TaxType.GST, date(2025, 3, 31))

        assert result.raw_deadline == date(2025, 4, 21)
        assert result.deadline == date(2025, 4, 22)

    def test_recurring_seed_holiday(self):
        service = DeadlineService()
        apply_seed(service, load_seed_dir(RULES_DIR))

        assert service.holiday_calendar.is_holiday(date(2030, 4, 27)) is True


class TestMalformedSeed:
    """잘못된 파일 처리 테스트"""

    def test_malformed_file_skipped(self, tmp_path):
        (tmp_path / "broken.yaml").write_text("rules: [", encoding="utf-8")
        (tmp_path / "bad_rule.yaml").write_text("rules:\n  - tax_type: GST\n", encoding="utf-8")
        (tmp_path / "good.yml").write_text(
            "rules:\n"
            "  - tax_type: PAYE\n"
            "    offset: {amount: 21, unit: days}\n"
            "    active: true\n",
            encoding="utf-8"
        )

        seeds = load_seed_dir(tmp_path)

        assert len(seeds) == 1
        assert seeds[0].rules[0].definition.tax_type is TaxType.PAYE
        assert seeds[0].rules[0].active is True

    def test_missing_offset_rejected(self, tmp_path):
        path = tmp_path / "rules.yaml"
        path.write_text("rules:\n  - tax_type: GST\n", encoding="utf-8")

        with pytest.raises(ValidationError):
            load_seed_file(path)

    def test_missing_directory(self, tmp_path):
        assert load_seed_dir(tmp_path / "nope") == []

    def test_duplicate_holiday_skipped(self, tmp_path):
        (tmp_path / "a.yaml").write_text(
            "holidays:\n  - date: 2025-04-27\n    name: Independence Day\n", encoding="utf-8"
        )
        (tmp_path / "b.yaml").write_text(
            "holidays:\n  - date: 2025-04-27\n    name: Independence Day\n", encoding="utf-8"
        )
        service = DeadlineService()

        counts = apply_seed(service, load_seed_dir(tmp_path))

        assert counts == {"rules": 0, "holidays": 1}
