"""
Project file loading and saving.

A project file (YAML or JSON) holds one project: its header, schedule of
values, change orders and pay application history. Files are validated
against cpas.data.schema before anything is handed to the billing engine,
and are always rewritten whole so that a pay application is never stored
without its line items.
"""

import json
import logging
import os
import tempfile
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from pydantic import ValidationError

from cpas.billing.lifecycle import PayApplicationDraft
from cpas.billing.line_items import build_line_item
from cpas.billing.models import (
    ChangeOrder, G702Summary, PayApplication, PayAppLineItem, PayAppLineItemInput,
    PayAppStatus, Project, ProjectData, RetainageRates, ScheduleOfValuesItem
)
from cpas.config import get_section
from cpas.data.schema import (
    ChangeOrderSchema, LineItemSchema, PayApplicationSchema, ProjectFileSchema,
    ProjectSchema, ScheduleItemSchema, SummarySchema
)

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

YAML_SUFFIXES = ('.yml', '.yaml')


class ProjectFileError(Exception):
    """Raised when a project file cannot be read, parsed or validated."""
    pass


def _format_validation_error(error: ValidationError) -> str:
    lines = []
    for item in error.errors():
        location = ".".join(str(part) for part in item.get("loc", ()))
        lines.append(f"{location or '<file>'}: {item.get('msg')}")
    return "; ".join(lines)


def read_project_file(path: PathLike) -> Dict[str, Any]:
    """Read a project file into a plain dictionary.

    Args:
        path: Path to a .yaml/.yml or .json file

    Returns:
        Raw file contents

    Raises:
        ProjectFileError: If the file is missing or not valid YAML/JSON
    """
    path = Path(path)
    if not path.exists():
        raise ProjectFileError(f"Project file not found: {path}")

    try:
        with open(path, 'r') as f:
            if path.suffix.lower() in YAML_SUFFIXES:
                raw = yaml.safe_load(f)
            else:
                raw = json.load(f)
    except (OSError, json.JSONDecodeError, yaml.YAMLError) as e:
        raise ProjectFileError(f"Could not read project file {path}: {e}")

    if not isinstance(raw, dict):
        raise ProjectFileError(f"Project file {path} must contain a mapping at the top level")
    return raw


def _line_item(record: LineItemSchema, rates: RetainageRates) -> PayAppLineItem:
    row = PayAppLineItemInput(
        sov_id=record.sov_id,
        item_number=record.item_number,
        description=record.description,
        scheduled_value=record.scheduled_value,
        work_completed_previous=record.work_completed_previous,
        work_completed_this_period=record.work_completed_this_period,
        materials_stored=record.materials_stored,
    )
    if not record.has_derived_columns():
        return build_line_item(row, rates)

    # Saved snapshot: the derived columns are taken as stored.
    return PayAppLineItem(
        **asdict(row),
        total_completed_and_stored=record.total_completed_and_stored,
        percent_complete=record.percent_complete,
        balance_to_finish=record.balance_to_finish,
        retainage=record.retainage,
    )


def _frozen_application(record: PayApplicationSchema, rates: RetainageRates) -> PayApplication:
    return PayApplication(
        application_number=record.number,
        period_from=record.period_from,
        period_to=record.period_to,
        status=record.status,
        summary=G702Summary(**record.summary.model_dump()),
        line_items=tuple(_line_item(item, rates) for item in record.line_items),
        created_at=record.created_at,
        submitted_at=record.submitted_at,
        paid_at=record.paid_at,
    )


def parse_project_data(raw: Dict[str, Any], config: Optional[Dict[str, Any]] = None) -> ProjectData:
    """Validate raw project-file contents and build the engine's records.

    Submitted and paid applications are loaded exactly as stored. Drafts are
    recalculated from their entered values against the current schedule,
    change orders and history.

    Args:
        raw: Raw project-file contents
        config: Billing configuration supplying defaults (defaults to the global ``billing`` section)

    Returns:
        ProjectData

    Raises:
        ProjectFileError: If the contents do not match the schema
    """
    try:
        schema = ProjectFileSchema.model_validate(raw)
    except ValidationError as e:
        raise ProjectFileError(f"Invalid project file: {_format_validation_error(e)}")

    billing = config if config is not None else get_section("billing")
    header = schema.project

    project = Project(
        project_id=header.id,
        name=header.name,
        original_contract_sum=header.original_contract_sum,
        retainage_rate_work=(
            header.retainage_rate_work if header.retainage_rate_work is not None
            else billing.get("default_retainage_rate_work", 0.10)
        ),
        retainage_rate_stored=(
            header.retainage_rate_stored if header.retainage_rate_stored is not None
            else billing.get("default_retainage_rate_stored", 0.10)
        ),
        contract_date=header.contract_date,
        billing_day=header.billing_day or billing.get("default_billing_day", 25),
        project_number=header.number,
        address=header.address,
        owner_name=header.owner,
        contractor_name=header.contractor,
        architect_name=header.architect,
    )
    try:
        rates = project.retainage_rates
    except ValueError as e:
        raise ProjectFileError(f"Invalid project file: {e}")

    data = ProjectData(
        project=project,
        sov_items=tuple(
            ScheduleOfValuesItem(
                sov_id=item.id,
                item_number=item.item_number,
                description=item.description,
                scheduled_value=item.scheduled_value,
                sort_order=item.sort_order,
                change_order_number=item.change_order_number,
            )
            for item in schema.schedule_of_values
        ),
        change_orders=tuple(
            ChangeOrder(
                co_number=co.number,
                description=co.description,
                amount=co.amount,
                status=co.status,
                date_approved=co.date_approved,
            )
            for co in sorted(schema.change_orders, key=lambda co: co.number)
        ),
    )

    records = sorted(schema.pay_applications, key=lambda app: app.number)
    for record in records:
        if record.status != PayAppStatus.DRAFT:
            data = data.with_application(_frozen_application(record, rates))

    for record in records:
        if record.status == PayAppStatus.DRAFT:
            draft = PayApplicationDraft(
                data,
                application_number=record.number,
                period_from=record.period_from,
                period_to=record.period_to,
                line_items=[_line_item(item, rates).to_input() for item in record.line_items],
            )
            data = data.with_application(draft.snapshot(created_at=record.created_at))

    logger.debug(
        f"Loaded project {project.project_id}: {len(data.sov_items)} SOV item(s), "
        f"{len(data.change_orders)} change order(s), {len(data.pay_applications)} pay application(s)"
    )
    return data


def load_project_file(path: PathLike, config: Optional[Dict[str, Any]] = None) -> ProjectData:
    """Load and validate a project file.

    Args:
        path: Path to a .yaml/.yml or .json file
        config: Billing configuration supplying defaults

    Returns:
        ProjectData
    """
    logger.info(f"Loading project file: {path}")
    return parse_project_data(read_project_file(path), config)


def _application_record(app: PayApplication) -> PayApplicationSchema:
    return PayApplicationSchema(
        number=app.application_number,
        period_from=app.period_from,
        period_to=app.period_to,
        status=app.status,
        created_at=app.created_at,
        submitted_at=app.submitted_at,
        paid_at=app.paid_at,
        summary=SummarySchema(**asdict(app.summary)),
        line_items=[LineItemSchema(**asdict(item)) for item in app.line_items],
    )


def project_data_to_dict(data: ProjectData) -> Dict[str, Any]:
    """Convert project data to the project-file layout (JSON-compatible)."""
    project = data.project
    schema = ProjectFileSchema(
        project=ProjectSchema(
            id=project.project_id,
            name=project.name,
            number=project.project_number,
            address=project.address,
            owner=project.owner_name,
            contractor=project.contractor_name,
            architect=project.architect_name,
            original_contract_sum=project.original_contract_sum,
            retainage_rate_work=project.retainage_rate_work,
            retainage_rate_stored=project.retainage_rate_stored,
            contract_date=project.contract_date,
            billing_day=project.billing_day,
        ),
        schedule_of_values=[
            ScheduleItemSchema(
                id=sov.sov_id,
                item_number=sov.item_number,
                description=sov.description,
                scheduled_value=sov.scheduled_value,
                sort_order=sov.sort_order,
                change_order_number=sov.change_order_number,
            )
            for sov in data.sov_items
        ],
        change_orders=[
            ChangeOrderSchema(
                number=co.co_number,
                description=co.description,
                amount=co.amount,
                status=co.status,
                date_approved=co.date_approved,
            )
            for co in data.change_orders
        ],
        pay_applications=[_application_record(app) for app in data.pay_applications],
    )
    return schema.model_dump(mode="json", exclude_none=True)


def save_project_file(data: ProjectData, path: PathLike) -> None:
    """Write project data to ``path``, replacing the file atomically.

    Args:
        data: Project data to save
        path: Destination .yaml/.yml or .json file

    Raises:
        ProjectFileError: If the file cannot be written
    """
    path = Path(path)
    content = project_data_to_dict(data)
    directory = path.parent if str(path.parent) else Path('.')

    try:
        handle, temp_path = tempfile.mkstemp(dir=directory, prefix=f".{path.name}.", suffix=".tmp")
        try:
            with os.fdopen(handle, 'w') as f:
                if path.suffix.lower() in YAML_SUFFIXES:
                    yaml.safe_dump(content, f, sort_keys=False)
                else:
                    json.dump(content, f, indent=2)
            os.replace(temp_path, path)
        except BaseException:
            if os.path.exists(temp_path):
                os.unlink(temp_path)
            raise
    except OSError as e:
        raise ProjectFileError(f"Could not write project file {path}: {e}")

    logger.info(f"Saved project file: {path}")
