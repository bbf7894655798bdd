from metapage.page_engine.rules.condition_evaluator import (
    check_page_rule,
    derive_dataset_rules,
)

__all__ = ["check_page_rule", "derive_dataset_rules"]
