"""Bulk onboarding: import users from CSV, assign groups by attribute rules,
and grant applications.

Each stage isolates failures per row / entity / application and records them
in a :class:`~directory_ops.onboarding.report.StageResult`; nothing is rolled
back across stages.

Entry point: ``directory_ops.onboarding.runner.run_onboarding_workflow()``
"""
