"""
Report generator for the Construction Pay Application System.

This module renders a pay application as a Markdown or HTML document from a
Jinja2 template, or hands it to the Excel exporter. Templates are looked up
in the configured ``templates_dir`` first, then in the package's own
templates directory.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Union

import jinja2
import markdown

from cpas.billing.engine import BillingEngine
from cpas.billing.exceptions import BillingError
from cpas.billing.models import ProjectData
from cpas.billing.money import format_currency, format_percent
from cpas.reporting.excel_exporter import ExcelExporter, g702_rows

# Set up logging
logger = logging.getLogger(__name__)

REPORT_FORMATS = ('markdown', 'html', 'xlsx')

PAY_APPLICATION_TEMPLATE = 'pay_application.md.j2'


class ReportGenerator:
    """Generates pay application reports."""

    def __init__(self, config: Optional[Dict[str, Any]] = None, engine: Optional[BillingEngine] = None):
        """Initialize the report generator.

        Args:
            config: Optional configuration dictionary (the ``reporting`` section)
            engine: Billing engine used to present snapshots
        """
        self.config = config or {}
        self.engine = engine or BillingEngine()
        self.template_dir = Path(__file__).parent / 'templates'
        self.jinja_env = self._setup_jinja_env()

    def _setup_jinja_env(self) -> jinja2.Environment:
        """Set up the Jinja2 template environment.

        Returns:
            Jinja2 Environment
        """
        loaders = []
        if self.config.get('templates_dir'):
            loaders.append(jinja2.FileSystemLoader(str(self.config['templates_dir'])))
        loaders.append(jinja2.FileSystemLoader(str(self.template_dir)))

        env = jinja2.Environment(
            loader=jinja2.ChoiceLoader(loaders),
            autoescape=jinja2.select_autoescape(['html']),
            trim_blocks=True,
            lstrip_blocks=True
        )

        # Add custom filters
        env.filters['currency'] = format_currency
        env.filters['percent'] = format_percent
        env.filters['date'] = lambda dt: dt.strftime('%Y-%m-%d') if dt else ''

        return env

    def render_markdown(self, data: ProjectData, application_number: int) -> str:
        """Render one pay application as Markdown.

        Args:
            data: Project data
            application_number: Application to render

        Returns:
            Markdown text
        """
        application = data.get_application(application_number)
        if application is None:
            raise BillingError(f"Pay application #{application_number} not found")

        calculation = self.engine.snapshot_calculation(application)
        template = self.jinja_env.get_template(PAY_APPLICATION_TEMPLATE)
        return template.render(
            project=data.project,
            application=application,
            calculation=calculation,
            summary_lines=g702_rows(calculation.summary),
            change_orders=sorted(data.change_orders, key=lambda co: co.co_number),
            company_name=self.config.get('company_name'),
            generated_at=datetime.now().strftime('%Y-%m-%d %H:%M'),
        )

    def _generate_html(self, markdown_content: str, title: str) -> str:
        """Wrap converted Markdown in a complete HTML document."""
        html_content = markdown.markdown(markdown_content, extensions=['tables'])
        return f"""<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <title>{title}</title>
    <style>
        body {{ font-family: Arial, sans-serif; margin: 2em; }}
        table {{ border-collapse: collapse; margin-bottom: 1.5em; }}
        th, td {{ border: 1px solid #999; padding: 4px 8px; }}
        th {{ background-color: #4F81BD; color: #fff; }}
    </style>
</head>
<body>
{html_content}
</body>
</html>"""

    def generate_pay_application_report(
        self,
        data: ProjectData,
        application_number: int,
        output_path: Optional[Union[str, Path]] = None,
        format: Optional[str] = None
    ) -> Dict[str, Any]:
        """Generate a pay application report.

        Args:
            data: Project data
            application_number: Application to report on
            output_path: Where to save the report (required for xlsx)
            format: Output format (markdown, html, xlsx); defaults to ``default_format``

        Returns:
            Dictionary with report information
        """
        format = format or self.config.get('default_format') or 'markdown'
        if format not in REPORT_FORMATS:
            raise ValueError(f"Unsupported report format: {format}")

        logger.info(f"Generating pay application #{application_number} report in {format} format")

        if format == 'xlsx':
            if output_path is None:
                raise ValueError("An output path is required for Excel reports")
            application = data.get_application(application_number)
            if application is None:
                raise BillingError(f"Pay application #{application_number} not found")
            result = ExcelExporter(self.engine).export_pay_application(
                output_path, data.project, application, data.change_orders
            )
            return {'format': format, 'path': result['path'], 'content': None,
                    'generated_at': result['generated_at']}

        content = self.render_markdown(data, application_number)
        if format == 'html':
            title = f"{data.project.name} - Pay Application #{application_number}"
            content = self._generate_html(content, title)

        if output_path is not None:
            Path(output_path).write_text(content, encoding='utf-8')
            logger.info(f"Report saved to {output_path}")

        return {
            'format': format,
            'path': str(output_path) if output_path is not None else None,
            'content': content,
            'generated_at': datetime.now().isoformat()
        }
