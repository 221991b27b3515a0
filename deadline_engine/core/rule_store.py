"""RuleStore: 세목별 마감일 규칙 저장소

세목(TaxType)당 활성 규칙은 최대 하나라는 불변식을 지킵니다.

- 변경(생성/수정/활성화/비활성화/삭제)은 세목 단위 잠금으로 직렬화됩니다.
  서로 다른 세목의 변경은 서로를 막지 않습니다.
- 세목별 규칙 맵은 copy-on-write로 통째로 교체되므로,
  조회는 잠금 없이 항상 완전한 스냅샷(기존 상태 또는 새 상태)만 봅니다.
"""

import logging
import threading
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional, Tuple
from uuid import uuid4

from .errors import Conflict, NoActiveRule, NotFound, ValidationError
from .models import (
    DeadlineRuleConfiguration,
    RuleDefinition,
    TaxType,
    as_calendar_date,
)

logger = logging.getLogger(__name__)

# (변경 전, 변경 후)
RuleTransition = Tuple[DeadlineRuleConfiguration, DeadlineRuleConfiguration]


@dataclass
class RuleChangeSet:
    """한 번의 교체로 확정된 변경 내역

    세목 잠금 안에서 만들어지므로 감사 기록은 이 값만으로 정확한 전후 상태를 남길 수 있습니다.

    Attributes:
        rule: 대상 규칙의 변경 후 레코드
        before: 대상 규칙의 변경 전 레코드 (생성이면 None)
        deactivated: 함께 비활성화된 다른 규칙들
        activated: 삭제 시 대신 활성화된 대체 규칙
        changed: False면 이미 원하는 상태여서 아무것도 바꾸지 않음
    """
    rule: DeadlineRuleConfiguration
    before: Optional[DeadlineRuleConfiguration]
    deactivated: List[RuleTransition] = field(default_factory=list)
    activated: Optional[RuleTransition] = None
    changed: bool = True


class RuleStore:
    """마감일 규칙 저장소

    Example:
        >>> store = RuleStore()
        >>> rule = store.create(
        ...     RuleDefinition(tax_type=TaxType.GST, offset={"amount": 15, "unit": "days"}),
        ...     activate=True
        ... )
        >>> store.get_active_rule(TaxType.GST, date(2024, 3, 16)).rule_id == rule.rule_id
        True
    """

    def __init__(self, rules: Optional[Iterable[DeadlineRuleConfiguration]] = None):
        """
        Args:
            rules: 초기 규칙 (저장소에서 읽은 레코드, ID 유지)
        """
        self._rules_by_type: Dict[TaxType, Dict[str, DeadlineRuleConfiguration]] = {
            tax_type: {} for tax_type in TaxType
        }
        self._type_of: Dict[str, TaxType] = {}
        self._type_locks: Dict[TaxType, threading.Lock] = {
            tax_type: threading.Lock() for tax_type in TaxType
        }
        self._sequence_lock = threading.Lock()
        self._last_sequence = 0

        for rule in rules or []:
            self.restore(rule)

    # ------------------------------------------------------------------
    # 조회
    # ------------------------------------------------------------------

    def get_rule(self, rule_id: str) -> DeadlineRuleConfiguration:
        """ID로 규칙 조회 (삭제된 규칙 포함)

        Raises:
            NotFound: ID가 없는 경우
        """
        tax_type = self._type_of.get(rule_id)
        if tax_type is None:
            raise NotFound("DeadlineRule", rule_id)
        return self._rules_by_type[tax_type][rule_id]

    def get_active_rule(self, tax_type: TaxType, as_of: date) -> DeadlineRuleConfiguration:
        """as_of 날짜에 적용할 활성 규칙

        불변식상 후보는 최대 하나지만, 여러 개가 보이면 가장 최근에 활성화된
        규칙을 쓰고 불일치를 기록합니다.

        Raises:
            NoActiveRule: 적용 가능한 활성 규칙이 없는 경우
        """
        tax_type = TaxType.parse(tax_type)
        as_of = as_calendar_date(as_of, "as_of")

        snapshot = self._rules_by_type[tax_type]
        candidates = [rule for rule in snapshot.values() if rule.is_eligible_on(as_of)]

        if not candidates:
            raise NoActiveRule(tax_type, as_of)

        if len(candidates) > 1:
            logger.error(
                "Inconsistent rule store: %d active rules for %s on %s (%s)",
                len(candidates), tax_type.value, as_of.isoformat(),
                ", ".join(rule.rule_id for rule in candidates)
            )

        return max(candidates, key=lambda rule: rule.activation_sequence)

    def list_rules(
        self,
        tax_type: Optional[TaxType] = None,
        include_deleted: bool = False
    ) -> List[DeadlineRuleConfiguration]:
        """규칙 목록 (세목, 생성 시각 순)"""
        tax_types = [TaxType.parse(tax_type)] if tax_type is not None else list(TaxType)

        rules = []
        for current in tax_types:
            for rule in self._rules_by_type[current].values():
                if include_deleted or not rule.is_deleted:
                    rules.append(rule)

        order = {t: i for i, t in enumerate(TaxType)}
        return sorted(rules, key=lambda r: (order[r.tax_type], r.created_at, r.rule_id))

    def list_active_rules(
        self,
        tax_type: Optional[TaxType] = None,
        as_of: Optional[date] = None
    ) -> List[DeadlineRuleConfiguration]:
        """as_of(기본값: 오늘) 기준 활성 규칙 목록"""
        as_of = as_calendar_date(as_of, "as_of") if as_of is not None else date.today()
        return [rule for rule in self.list_rules(tax_type) if rule.is_eligible_on(as_of)]

    # ------------------------------------------------------------------
    # 변경
    # ------------------------------------------------------------------

    def create(
        self,
        definition: RuleDefinition,
        created_by: str = "system",
        activate: bool = False
    ) -> DeadlineRuleConfiguration:
        """규칙 생성

        새 규칙은 기본적으로 비활성입니다. activate=True이면 같은 잠금 안에서
        바로 활성화합니다.

        Raises:
            ValidationError: 오프셋/정책/유효기간이 잘못된 경우
        """
        return self.create_with_changes(definition, created_by, activate).rule

    def create_with_changes(
        self,
        definition: RuleDefinition,
        created_by: str = "system",
        activate: bool = False
    ) -> RuleChangeSet:
        """규칙 생성 후 함께 비활성화된 규칙까지 담은 RuleChangeSet 반환"""
        definition = definition.normalized()
        now = datetime.now()
        rule = DeadlineRuleConfiguration(
            rule_id=str(uuid4()),
            tax_type=definition.tax_type,
            offset=definition.offset,
            policy=definition.policy,
            rule_name=definition.rule_name,
            description=definition.description,
            trigger_type=definition.trigger_type,
            statutory_minimum_days=definition.statutory_minimum_days,
            effective_from=definition.effective_from,
            effective_to=definition.effective_to,
            created_by=created_by,
            created_at=now,
        )

        with self._type_locks[rule.tax_type]:
            deactivated: List[RuleTransition] = []
            if activate:
                deactivated, rule = self._activation_changes(rule, created_by, now)
            self._commit(rule.tax_type, [rule] + [after for _, after in deactivated])

        logger.info(
            "Created deadline rule %s for %s (%s, active=%s)",
            rule.rule_id, rule.tax_type.value, rule.offset, activate
        )
        return RuleChangeSet(rule=rule, before=None, deactivated=deactivated)

    def update(
        self,
        rule_id: str,
        definition: RuleDefinition,
        updated_by: str = "system"
    ) -> DeadlineRuleConfiguration:
        """규칙 수정

        활성 규칙의 수정은 이후 계산부터 즉시 반영됩니다.
        세목은 바꿀 수 없습니다 (새 규칙을 만들어야 함).

        Raises:
            NotFound: ID가 없는 경우
            ValidationError: 입력이 잘못되었거나 세목을 바꾸려는 경우
            Conflict: 삭제된 규칙인 경우
        """
        return self.update_with_changes(rule_id, definition, updated_by).rule

    def update_with_changes(
        self,
        rule_id: str,
        definition: RuleDefinition,
        updated_by: str = "system"
    ) -> RuleChangeSet:
        definition = definition.normalized()
        tax_type = self._require_type(rule_id)
        if definition.tax_type is not tax_type:
            raise ValidationError(
                f"Rule {rule_id} belongs to {tax_type.value}; tax type cannot be changed",
                field="tax_type"
            )

        with self._type_locks[tax_type]:
            current = self._rules_by_type[tax_type][rule_id]
            if current.is_deleted:
                raise Conflict(f"Deadline rule {rule_id} has been deleted")

            updated = replace(
                current,
                offset=definition.offset,
                policy=definition.policy,
                rule_name=definition.rule_name,
                description=definition.description,
                trigger_type=definition.trigger_type,
                statutory_minimum_days=definition.statutory_minimum_days,
                effective_from=definition.effective_from,
                effective_to=definition.effective_to,
                updated_by=updated_by,
                updated_at=datetime.now(),
            )
            self._commit(tax_type, [updated])

        logger.info("Updated deadline rule %s", rule_id)
        return RuleChangeSet(rule=updated, before=current)

    def activate(self, rule_id: str, activated_by: str = "system") -> DeadlineRuleConfiguration:
        """규칙 활성화

        같은 세목의 다른 활성 규칙을 비활성화하고 대상 규칙을 활성화하는 과정이
        한 번의 교체로 이루어집니다. 이미 유일한 활성 규칙이면 아무것도 바꾸지 않습니다.

        Raises:
            NotFound: ID가 없는 경우
            Conflict: 삭제된 규칙인 경우
        """
        return self.activate_with_changes(rule_id, activated_by).rule

    def activate_with_changes(self, rule_id: str, activated_by: str = "system") -> RuleChangeSet:
        """활성화 후 RuleChangeSet 반환 (비활성화된 규칙의 전후 레코드 포함)"""
        tax_type = self._require_type(rule_id)

        with self._type_locks[tax_type]:
            rules = self._rules_by_type[tax_type]
            current = rules[rule_id]
            if current.is_deleted:
                raise Conflict(f"Deadline rule {rule_id} has been deleted and cannot be activated")

            others_active = [r for r in rules.values() if r.is_active and r.rule_id != rule_id]
            if current.is_active and not others_active:
                return RuleChangeSet(rule=current, before=current, changed=False)

            deactivated, activated = self._activation_changes(current, activated_by, datetime.now())
            self._commit(tax_type, [activated] + [after for _, after in deactivated])

        logger.info(
            "Activated deadline rule %s for %s (deactivated: %s)",
            rule_id, tax_type.value,
            ", ".join(before.rule_id for before, _ in deactivated) or "none"
        )
        return RuleChangeSet(rule=activated, before=current, deactivated=deactivated)

    def deactivate(self, rule_id: str, deactivated_by: str = "system") -> DeadlineRuleConfiguration:
        """규칙 비활성화

        다른 규칙을 활성화하지 않습니다. 이후 해당 세목의 해석은 NoActiveRule로 실패합니다.

        Raises:
            NotFound: ID가 없는 경우
        """
        return self.deactivate_with_changes(rule_id, deactivated_by).rule

    def deactivate_with_changes(self, rule_id: str, deactivated_by: str = "system") -> RuleChangeSet:
        tax_type = self._require_type(rule_id)

        with self._type_locks[tax_type]:
            current = self._rules_by_type[tax_type][rule_id]
            if not current.is_active:
                return RuleChangeSet(rule=current, before=current, changed=False)

            updated = replace(
                current,
                is_active=False,
                updated_by=deactivated_by,
                updated_at=datetime.now(),
            )
            self._commit(tax_type, [updated])

        logger.info("Deactivated deadline rule %s for %s", rule_id, tax_type.value)
        return RuleChangeSet(rule=updated, before=current)

    def delete(
        self,
        rule_id: str,
        replacement_id: Optional[str] = None,
        deleted_by: str = "system"
    ) -> DeadlineRuleConfiguration:
        """규칙 삭제 (향후 해석 대상에서 제외, 레코드는 보존)

        활성 규칙은 replacement_id가 주어진 경우에만 삭제할 수 있으며,
        삭제와 대체 규칙 활성화가 한 번의 교체로 이루어집니다.

        Raises:
            NotFound: rule_id 또는 replacement_id가 없는 경우
            Conflict: 대체 규칙 없이 활성 규칙을 삭제하려는 경우, 대체 규칙이 삭제된 경우
            ValidationError: 대체 규칙의 세목이 다르거나 자기 자신인 경우
        """
        return self.delete_with_changes(rule_id, replacement_id, deleted_by).rule

    def delete_with_changes(
        self,
        rule_id: str,
        replacement_id: Optional[str] = None,
        deleted_by: str = "system"
    ) -> RuleChangeSet:
        """삭제 후 RuleChangeSet 반환 (대체 규칙 활성화 전후 레코드 포함)"""
        tax_type = self._require_type(rule_id)
        if replacement_id is not None:
            if replacement_id == rule_id:
                raise ValidationError("A rule cannot replace itself", field="replacement_id")
            replacement_type = self._require_type(replacement_id)
            if replacement_type is not tax_type:
                raise ValidationError(
                    f"Replacement rule {replacement_id} is not a {tax_type.value} rule",
                    field="replacement_id"
                )

        with self._type_locks[tax_type]:
            rules = self._rules_by_type[tax_type]
            current = rules[rule_id]
            if current.is_deleted:
                return RuleChangeSet(rule=current, before=current, changed=False)

            now = datetime.now()
            deactivated: List[RuleTransition] = []
            activated: Optional[RuleTransition] = None

            if current.is_active:
                if replacement_id is None:
                    raise Conflict(
                        f"Deadline rule {rule_id} is the active {tax_type.value} rule; "
                        "supply a replacement to delete it"
                    )
                replacement = rules[replacement_id]
                if replacement.is_deleted:
                    raise Conflict(f"Replacement rule {replacement_id} has been deleted")
                others, replacement_after = self._activation_changes(replacement, deleted_by, now)
                deactivated = [pair for pair in others if pair[0].rule_id != rule_id]
                activated = (replacement, replacement_after)

            deleted = replace(
                current,
                is_active=False,
                deleted_at=now,
                updated_by=deleted_by,
                updated_at=now,
            )
            changed = [deleted] + [after for _, after in deactivated]
            if activated is not None:
                changed.append(activated[1])
            self._commit(tax_type, changed)

        logger.info(
            "Deleted deadline rule %s for %s (replacement: %s)",
            rule_id, tax_type.value, replacement_id if activated is not None else "n/a"
        )
        return RuleChangeSet(rule=deleted, before=current, deactivated=deactivated, activated=activated)

    def restore(self, rule: DeadlineRuleConfiguration) -> DeadlineRuleConfiguration:
        """저장소에서 읽은 규칙을 그대로 적재

        Raises:
            Conflict: 같은 ID가 이미 있는 경우
        """
        with self._type_locks[rule.tax_type]:
            if rule.rule_id in self._type_of:
                raise Conflict(f"Deadline rule {rule.rule_id} is already loaded")
            self._commit(rule.tax_type, [rule])

        with self._sequence_lock:
            self._last_sequence = max(self._last_sequence, rule.activation_sequence)
        return rule

    # ------------------------------------------------------------------
    # 내부 도우미
    # ------------------------------------------------------------------

    def _require_type(self, rule_id: str) -> TaxType:
        tax_type = self._type_of.get(rule_id)
        if tax_type is None:
            raise NotFound("DeadlineRule", rule_id)
        return tax_type

    def _next_sequence(self) -> int:
        with self._sequence_lock:
            self._last_sequence += 1
            return self._last_sequence

    def _activation_changes(
        self,
        target: DeadlineRuleConfiguration,
        actor: str,
        now: datetime
    ) -> Tuple[List[RuleTransition], DeadlineRuleConfiguration]:
        # 호출자가 해당 세목 잠금을 잡고 있어야 함
        deactivated = [
            (rule, replace(rule, is_active=False, updated_by=actor, updated_at=now))
            for rule in self._rules_by_type[target.tax_type].values()
            if rule.is_active and rule.rule_id != target.rule_id
        ]
        activated = replace(
            target,
            is_active=True,
            activated_at=now,
            activation_sequence=self._next_sequence(),
            updated_by=actor,
            updated_at=now,
        )
        return deactivated, activated

    def _commit(self, tax_type: TaxType, records: List[DeadlineRuleConfiguration]) -> None:
        # 호출자가 해당 세목 잠금을 잡고 있어야 함
        rules = dict(self._rules_by_type[tax_type])
        for record in records:
            rules[record.rule_id] = record
        self._rules_by_type[tax_type] = rules
        for record in records:
            self._type_of[record.rule_id] = tax_type

    def __len__(self) -> int:
        return len(self._type_of)

    def __str__(self) -> str:
        active = sum(
            1 for rules in self._rules_by_type.values()
            for rule in rules.values() if rule.is_active
        )
        return f"RuleStore({len(self)} rules, {active} active)"
