"""
Condition rule predicate and dataset-driven rule derivation.
"""

import logging
from typing import Any, Iterable, List, Optional

from metapage.page_engine.models.dataset import Row
from metapage.page_engine.models.rules import RuleStore
from metapage.page_engine.schemas.base import CondCheck
from metapage.page_engine.schemas.page import CondRuleDef

logger = logging.getLogger(__name__)


def check_page_rule(rules: RuleStore, exec_cond: Optional[Iterable[CondCheck]]) -> bool:
    """
    True when every `{condId, value}` pair matches the live rule value.

    An empty condition list is satisfied. A condId with no live value is not.
    """
    for check in exec_cond or ():
        live = rules.get(check.cond_id)
        if live is None:
            logger.warning(f"Condition {check.cond_id} has no live value, treated as unmet")
            return False
        if live != check.value:
            return False
    return True


def _same_value(candidate: str, value: Any) -> bool:
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return candidate == str(value)


def derive_dataset_rules(
    rules: RuleStore,
    definitions: Iterable[CondRuleDef],
    data_set_name: str,
    selected_row: Optional[Row],
) -> List[int]:
    """
    Re-derive the rules bound to `data_set_name` from its selected row.

    For each rule declaring this dataset, the first `fieldValues[j]` whose
    `;`-separated values include the row's `fieldName` value sets the rule to
    `dataSetCondValues[j]`. Rules with no match keep their value. Returns the
    condIds that were set.
    """
    changed: List[int] = []
    if selected_row is None:
        return changed

    for definition in definitions:
        if definition.data_set_name != data_set_name or not definition.field_name:
            continue
        if definition.field_name not in selected_row:
            continue
        value = selected_row[definition.field_name]
        for j, candidates in enumerate(definition.field_values):
            if any(_same_value(c, value) for c in str(candidates).split(";")):
                if j < len(definition.data_set_cond_values):
                    rules.set(definition.cond_id, definition.data_set_cond_values[j])
                    changed.append(definition.cond_id)
                break
    return changed
