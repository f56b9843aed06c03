"""
Validate a workflow definition without publishing it.

Usage:
    python -m scripts.validate_workflow path/to/workflow.json
    python -m scripts.validate_workflow --workflow-id WF-XXXX   # stored draft

Exits with status 1 when the definition has errors.
"""
import argparse
import json
import sys
from typing import List, Optional

from pydantic import ValidationError

from app.domain.models import ValidationReport, WorkflowDefinition
from app.engine.step_graph import StepGraph


def load_definition(path: str) -> WorkflowDefinition:
    with open(path, encoding="utf-8") as f:
        return WorkflowDefinition.model_validate(json.load(f))


def load_stored_definition(workflow_id: str) -> WorkflowDefinition:
    from app.services.workflow_service import WorkflowService
    return WorkflowService().get_workflow(workflow_id)


def print_report(definition: WorkflowDefinition, report: ValidationReport) -> None:
    print(f"Workflow: {definition.name}")
    print(f"Steps: {len(definition.steps)}")
    for step in definition.ordered_steps():
        targets = ", ".join(step.target_ids) or "-"
        print(f"   [{step.type.value}] {step.id} ({step.name}) -> {targets}")
    print()

    print("=" * 60)
    print("VALID" if report.is_valid else "INVALID")
    print("=" * 60)

    for issue in report.errors:
        print(f"❌ {issue.type}: {issue.message}" + (f" [{issue.path}]" if issue.path else ""))
    for issue in report.warnings:
        print(f"⚠️  {issue.type}: {issue.message}" + (f" [{issue.path}]" if issue.path else ""))


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Validate a workflow definition")
    parser.add_argument("path", nargs="?", help="Workflow definition JSON file")
    parser.add_argument("--workflow-id", help="Validate a stored workflow instead of a file")
    args = parser.parse_args(argv)

    if not args.path and not args.workflow_id:
        parser.error("either a file path or --workflow-id is required")

    try:
        if args.workflow_id:
            definition = load_stored_definition(args.workflow_id)
        else:
            definition = load_definition(args.path)
    except (OSError, json.JSONDecodeError, ValidationError) as e:
        print(f"❌ Could not load workflow: {e}")
        return 1

    report = StepGraph(definition).validate()
    print_report(definition, report)
    return 0 if report.is_valid else 1


if __name__ == "__main__":
    sys.exit(main())
