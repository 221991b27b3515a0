"""ExtensionLedger 테스트"""

import pytest
from datetime import date, timedelta

from deadline_engine.core import (
    Conflict,
    ExtensionLedger,
    NotFound,
    TaxType,
    ValidationError,
)
from deadline_engine.core.extension_ledger import KEY_LOCK_STRIPES

ORIGINAL = date(2024, 4, 1)


class TestGrant:
    """연장 부여 테스트"""

    def test_grant_extension(self, extension_ledger):
        extension = extension_ledger.grant(
            "C-1001", TaxType.GST, ORIGINAL, date(2024, 4, 15), "officer", reason="Documents delayed"
        )

        assert extension.is_active is True
        assert extension.extension_days == 14
        assert extension.reason == "Documents delayed"
        assert extension_ledger.get_active_extension("C-1001", TaxType.GST, ORIGINAL) == extension

    def test_extension_must_be_later(self, extension_ledger):
        with pytest.raises(ValidationError):
            extension_ledger.grant("C-1001", TaxType.GST, ORIGINAL, ORIGINAL, "officer")
        with pytest.raises(ValidationError):
            extension_ledger.grant("C-1001", TaxType.GST, ORIGINAL, date(2024, 3, 20), "officer")

    def test_granted_by_required(self, extension_ledger):
        with pytest.raises(ValidationError):
            extension_ledger.grant("C-1001", TaxType.GST, ORIGINAL, date(2024, 4, 15), " ")

    def test_client_id_required(self, extension_ledger):
        with pytest.raises(ValidationError):
            extension_ledger.grant("", TaxType.GST, ORIGINAL, date(2024, 4, 15), "officer")

    def test_numeric_client_id_normalized(self, extension_ledger):
        extension_ledger.grant(1001, TaxType.GST, ORIGINAL, date(2024, 4, 15), "officer")

        assert extension_ledger.get_active_extension("1001", TaxType.GST, ORIGINAL) is not None


class TestSupersession:
    """연장 대체 테스트"""

    def test_second_grant_supersedes_first(self, extension_ledger):
        first = extension_ledger.grant("C-1001", TaxType.GST, ORIGINAL, date(2024, 4, 15), "officer")

        second, superseded = extension_ledger.grant_with_supersession(
            "C-1001", TaxType.GST, ORIGINAL, date(2024, 4, 30), "manager"
        )

        assert superseded.extension_id == first.extension_id
        assert superseded.is_active is False
        assert superseded.superseded_by == second.extension_id
        assert extension_ledger.get_active_extension("C-1001", TaxType.GST, ORIGINAL) == second

    def test_different_keys_do_not_supersede(self, extension_ledger):
        gst = extension_ledger.grant("C-1001", TaxType.GST, ORIGINAL, date(2024, 4, 15), "officer")
        extension_ledger.grant("C-1001", TaxType.PAYE, ORIGINAL, date(2024, 4, 15), "officer")
        extension_ledger.grant("C-2002", TaxType.GST, ORIGINAL, date(2024, 4, 15), "officer")

        assert extension_ledger.get_extension(gst.extension_id).is_active is True


class TestRevoke:
    """연장 철회 테스트"""

    def test_revoke(self, extension_ledger):
        extension = extension_ledger.grant("C-1001", TaxType.GST, ORIGINAL, date(2024, 4, 15), "officer")

        revoked = extension_ledger.revoke(extension.extension_id, revoked_by="manager")

        assert revoked.revoked_at is not None
        assert revoked.revoked_by == "manager"
        assert extension_ledger.get_active_extension("C-1001", TaxType.GST, ORIGINAL) is None
        # 레코드는 감사용으로 남음
        assert extension_ledger.get_extension(extension.extension_id) == revoked

    def test_revoke_twice_is_idempotent(self, extension_ledger):
        extension = extension_ledger.grant("C-1001", TaxType.GST, ORIGINAL, date(2024, 4, 15), "officer")

        first = extension_ledger.revoke(extension.extension_id)
        second = extension_ledger.revoke(extension.extension_id)

        assert second == first
        assert len(extension_ledger) == 1

    def test_revoke_unknown(self, extension_ledger):
        with pytest.raises(NotFound):
            extension_ledger.revoke("missing")


class TestListByClient:
    """고객별 이력 테스트"""

    def test_history_newest_first(self, extension_ledger):
        first = extension_ledger.grant("C-1001", TaxType.GST, ORIGINAL, date(2024, 4, 15), "officer")
        second = extension_ledger.grant("C-1001", TaxType.PAYE, date(2024, 5, 15), date(2024, 5, 31), "officer")
        third = extension_ledger.grant("C-1001", TaxType.GST, ORIGINAL, date(2024, 4, 30), "officer")
        extension_ledger.grant("C-2002", TaxType.GST, ORIGINAL, date(2024, 4, 15), "officer")

        history = extension_ledger.list_by_client("C-1001")

        assert [e.extension_id for e in history] == [
            third.extension_id, second.extension_id, first.extension_id
        ]
        assert history[2].is_active is False


class TestRestore:
    """저장된 레코드 적재 테스트"""

    def test_restore_rebuilds_active_index(self, extension_ledger):
        extension = extension_ledger.grant("C-1001", TaxType.GST, ORIGINAL, date(2024, 4, 15), "officer")

        restored = ExtensionLedger([extension])

        assert restored.get_active_extension("C-1001", TaxType.GST, ORIGINAL) == extension
        newer = restored.grant("C-1001", TaxType.GST, ORIGINAL, date(2024, 4, 20), "officer")
        assert newer.sequence > extension.sequence

    def test_restore_two_active_for_same_key_conflicts(self):
        first = ExtensionLedger().grant("C-1001", TaxType.GST, ORIGINAL, date(2024, 4, 15), "officer")
        second = ExtensionLedger().grant("C-1001", TaxType.GST, ORIGINAL, date(2024, 4, 20), "officer")

        with pytest.raises(Conflict):
            ExtensionLedger([first, second])


class TestKeyLocks:
    """키 잠금 테스트"""

    def test_lock_count_does_not_grow_with_keys(self, extension_ledger):
        for i in range(300):
            original = ORIGINAL + timedelta(days=i)
            extension_ledger.grant(f"C-{i}", TaxType.GST, original, original + timedelta(days=14), "officer")

        assert len(extension_ledger._key_locks) == KEY_LOCK_STRIPES
        assert len(extension_ledger) == 300

    def test_same_key_shares_lock(self, extension_ledger):
        key = extension_ledger._key(" C-1001 ", "GST", "2024-04-01")

        assert extension_ledger._lock_for(key) is extension_ledger._lock_for(("C-1001", TaxType.GST, ORIGINAL))
