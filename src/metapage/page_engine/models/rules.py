from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from metapage.exceptions import MetadataNotFoundError
from metapage.page_engine.schemas.page import CondRuleDef

logger = logging.getLogger(__name__)


@dataclass
class ConditionRule:
    prj_id: str
    form_id: int
    cond_id: int
    cond_value: int


class RuleStore:
    """Live condition-rule values of one page, one entry per declared condId."""

    def __init__(self, prj_id: str, form_id: int):
        self.prj_id = prj_id
        self.form_id = form_id
        self._rules: Dict[int, ConditionRule] = {}

    def seed(self, definitions: Iterable[CondRuleDef]) -> None:
        self._rules.clear()
        for rule in definitions:
            self._rules[rule.cond_id] = ConditionRule(
                prj_id=self.prj_id,
                form_id=self.form_id,
                cond_id=rule.cond_id,
                cond_value=rule.cond_value,
            )

    def __contains__(self, cond_id: int) -> bool:
        return cond_id in self._rules

    def get(self, cond_id: int) -> Optional[int]:
        rule = self._rules.get(cond_id)
        return rule.cond_value if rule is not None else None

    def set(self, cond_id: int, cond_value: int) -> None:
        rule = self._rules.get(cond_id)
        if rule is None:
            raise MetadataNotFoundError(
                "condition rule", cond_id, prj_id=self.prj_id, form_id=self.form_id
            )
        if rule.cond_value != cond_value:
            logger.debug(
                f"Rule {cond_id} {rule.cond_value} -> {cond_value} "
                f"({self.prj_id}/{self.form_id})"
            )
        rule.cond_value = cond_value

    def values(self) -> List[Dict[str, int]]:
        return [
            {"condId": r.cond_id, "condValue": r.cond_value}
            for r in self._rules.values()
        ]

    def as_mapping(self) -> Dict[int, int]:
        return {r.cond_id: r.cond_value for r in self._rules.values()}
