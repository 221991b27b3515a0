"""기본 마감일 규칙/공휴일 YAML 로더

rules/ 디렉토리의 .yml, .yaml 파일을 읽어 RuleDefinition과 공휴일 목록으로 변환합니다.

파일 형식::

    version: "2025.1"
    rules:
      - tax_type: GST
        rule_name: GST Standard Filing Deadline
        offset: {amount: 21, unit: days}
        policy: RollForwardToNextBusinessDay
        trigger_type: PeriodEnd
        statutory_minimum_days: 21
        effective_from: 2024-01-01
        active: true
    holidays:
      - date: 2025-01-01
        name: New Year's Day
        recurring: true
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .errors import DeadlineEngineError, DuplicateHoliday, ValidationError
from .models import RuleDefinition, as_calendar_date

logger = logging.getLogger(__name__)


@dataclass
class SeedRule:
    definition: RuleDefinition
    active: bool = False


@dataclass
class SeedHoliday:
    holiday_date: date
    name: str
    recurring: bool = False
    description: Optional[str] = None


@dataclass
class SeedData:
    """한 YAML 파일에서 읽은 기본 데이터"""
    source: str
    version: str = "unknown"
    rules: List[SeedRule] = field(default_factory=list)
    holidays: List[SeedHoliday] = field(default_factory=list)


def load_seed_file(file_path: Path) -> SeedData:
    """YAML 파일에서 기본 데이터 로드

    Raises:
        ValidationError: 파일 형식이나 필수 필드가 잘못된 경우
        yaml.YAMLError: YAML 파싱 오류
    """
    with open(file_path, 'r', encoding='utf-8') as f:
        data = yaml.safe_load(f)

    if not isinstance(data, dict):
        raise ValidationError(f"Invalid seed file format: {file_path}")

    seed = SeedData(source=str(file_path), version=str(data.get('version', 'unknown')))

    for rule_data in data.get('rules') or []:
        seed.rules.append(_parse_rule_data(rule_data))

    for holiday_data in data.get('holidays') or []:
        seed.holidays.append(_parse_holiday_data(holiday_data))

    return seed


def load_seed_dir(seed_dir: Path) -> List[SeedData]:
    """디렉토리의 모든 YAML 파일 로드

    형식이 잘못된 파일은 경고를 남기고 건너뜁니다.
    """
    seed_dir = Path(seed_dir)
    if not seed_dir.exists():
        logger.warning("Seed directory %s does not exist", seed_dir)
        return []

    seeds = []
    for yaml_file in sorted(seed_dir.glob("*.y*ml")):
        try:
            seeds.append(load_seed_file(yaml_file))
        except (DeadlineEngineError, yaml.YAMLError, OSError) as e:
            logger.warning("Failed to load seed file %s: %s", yaml_file, e)
    return seeds


def apply_seed(service, seeds: List[SeedData], actor: str = "system") -> Dict[str, int]:
    """기본 데이터를 DeadlineService에 적재

    이미 있는 날짜의 공휴일은 경고를 남기고 건너뜁니다.

    Returns:
        {'rules': 생성된 규칙 수, 'holidays': 추가된 공휴일 수}
    """
    counts = {'rules': 0, 'holidays': 0}

    for seed in seeds:
        for seed_rule in seed.rules:
            service.create_rule(seed_rule.definition, actor=actor, activate=seed_rule.active)
            counts['rules'] += 1

        for seed_holiday in seed.holidays:
            try:
                service.add_holiday(
                    seed_holiday.holiday_date,
                    seed_holiday.name,
                    recurring=seed_holiday.recurring,
                    description=seed_holiday.description,
                    actor=actor,
                )
            except DuplicateHoliday as e:
                logger.warning("Skipping seed holiday %s from %s: %s", seed_holiday.name, seed.source, e)
                continue
            counts['holidays'] += 1

    logger.info("Seeded %d deadline rules and %d public holidays", counts['rules'], counts['holidays'])
    return counts


def _parse_rule_data(data: Dict[str, Any]) -> SeedRule:
    """딕셔너리에서 SeedRule 생성

    Raises:
        ValidationError: 필수 필드가 누락된 경우
    """
    if not isinstance(data, dict):
        raise ValidationError(f"Invalid rule entry: {data!r}")

    for required in ('tax_type', 'offset'):
        if required not in data:
            raise ValidationError(f"Missing required field: {required}", field=required)

    definition = RuleDefinition(
        tax_type=data['tax_type'],
        offset=data['offset'],
        policy=data.get('policy', 'RollForwardToNextBusinessDay'),
        rule_name=data.get('rule_name', ''),
        description=data.get('description'),
        trigger_type=data.get('trigger_type', 'PeriodEnd'),
        statutory_minimum_days=data.get('statutory_minimum_days'),
        effective_from=data.get('effective_from'),
        effective_to=data.get('effective_to'),
    ).normalized()

    return SeedRule(definition=definition, active=bool(data.get('active', False)))


def _parse_holiday_data(data: Dict[str, Any]) -> SeedHoliday:
    if not isinstance(data, dict) or 'date' not in data or not data.get('name'):
        raise ValidationError(f"Invalid holiday entry: {data!r}")

    return SeedHoliday(
        holiday_date=as_calendar_date(data['date'], 'date'),
        name=str(data['name']),
        recurring=bool(data.get('recurring', False)),
        description=data.get('description'),
    )
