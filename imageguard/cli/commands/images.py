"""
Category image integrity and migration commands.
"""
from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from imageguard.cli.commands.utils import confirm_action, format_bytes
from imageguard.cli.logging import setup_cli_logging
from imageguard.core.config import settings
from imageguard.core.database import get_session_context
from imageguard.core.exceptions import BackupArtifactError, ImageGuardException
from imageguard.models.enums import FindingType, HealthStatus
from imageguard.schemas.integrity import CorrectionResult, Finding, IntegrityResult
from imageguard.schemas.migration import MigrationOptions
from imageguard.services.corrector import Corrector
from imageguard.services.duplicate_detector import DuplicateDetector
from imageguard.services.file_store import FileStore
from imageguard.services.health_service import HealthReporter
from imageguard.services.integrity_checker import IntegrityChecker
from imageguard.services.migration_service import MigrationOrchestrator
from imageguard.services.record_index import RecordIndex

app = typer.Typer(help="Category image integrity and migration commands")
console = Console()

STATUS_STYLES = {
    HealthStatus.EXCELLENT: "green",
    HealthStatus.GOOD: "cyan",
    HealthStatus.FAIR: "yellow",
    HealthStatus.POOR: "red",
}
MAX_ROWS = 50


def _file_store() -> FileStore:
    return FileStore(settings.images_path)


@contextmanager
def _record_index() -> Iterator[RecordIndex]:
    with get_session_context() as session:
        yield RecordIndex(session)


def _fail(logger, error: Exception, message: str) -> None:
    logger.error(f"{message}: {error}")
    console.print(f"[red]✗ {message}: {error}[/red]")
    raise typer.Exit(code=1)


def _findings_table(title: str, findings: List[Finding]) -> Table:
    table = Table(title=title)
    table.add_column("Type", style="cyan")
    table.add_column("Category", style="white")
    table.add_column("File", style="white")
    table.add_column("Description", style="yellow")
    for finding in findings[:MAX_ROWS]:
        table.add_row(
            finding.type.value,
            finding.category_id or "-",
            finding.filename or "-",
            finding.description,
        )
    if len(findings) > MAX_ROWS:
        table.caption = f"... and {len(findings) - MAX_ROWS} more"
    return table


def _integrity_table(result: IntegrityResult) -> Table:
    table = Table(title="Integrity Summary")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="white")
    table.add_row("Files on disk", str(result.total_files))
    table.add_row("Categories", str(result.total_categories))
    table.add_row("Categories with images", str(result.categories_with_images))
    table.add_row("Orphaned files", str(len(result.orphaned)))
    table.add_row("Missing files", str(len(result.missing)))
    table.add_row("Invalid naming", str(len(result.invalid_naming)))
    table.add_row("Without image reference", str(len(result.missing_references)))
    table.add_row("Total issues", str(result.total_issues))
    return table


def _correction_table(title: str, results: List[CorrectionResult]) -> Table:
    table = Table(title=title)
    table.add_column("Operation", style="cyan")
    table.add_column("Corrected", style="green")
    table.add_column("Skipped", style="yellow")
    table.add_column("Errors", style="red")
    table.add_column("Freed", style="white")
    for result in results:
        table.add_row(
            result.operation,
            str(result.corrected_count),
            str(result.skipped_count),
            str(result.error_count),
            format_bytes(result.bytes_freed),
        )
    return table


def _print_details(results: List[CorrectionResult]) -> None:
    rows = [(result.operation, detail) for result in results for detail in result.details]
    if not rows:
        return
    table = Table(title="Details")
    table.add_column("Operation", style="cyan")
    table.add_column("Action", style="white")
    table.add_column("File", style="white")
    table.add_column("New file", style="green")
    table.add_column("Reason", style="yellow")
    for operation, detail in rows[:MAX_ROWS]:
        table.add_row(
            operation,
            detail.action,
            detail.filename or "-",
            detail.new_filename or "-",
            detail.reason or "",
        )
    if len(rows) > MAX_ROWS:
        table.caption = f"... and {len(rows) - MAX_ROWS} more"
    console.print(table)


@app.command("analyze")
def analyze_images(
    as_json: bool = typer.Option(False, "--json", help="Print the analysis as JSON"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
):
    """Show how many categories and files still need migrating."""
    logger = setup_cli_logging("analyze", verbose=verbose)

    with _record_index() as record_index:
        try:
            analysis = IntegrityChecker(_file_store(), record_index).analyze()
        except ImageGuardException as e:
            _fail(logger, e, "Analysis failed")

    if as_json:
        typer.echo(analysis.model_dump_json(indent=2))
        logger.info("Analysis written as JSON")
        return

    categories = Table(title="Categories")
    categories.add_column("Metric", style="cyan")
    categories.add_column("Value", style="white")
    categories.add_row("Total", str(analysis.categories.total))
    categories.add_row("With images", str(analysis.categories.with_images))
    categories.add_row("Need migration", str(analysis.categories.needs_migration))
    categories.add_row("Already unique", str(analysis.categories.already_unique))
    categories.add_row("Missing files", str(analysis.categories.missing_files))
    console.print(categories)

    files = Table(title="Files")
    files.add_column("Metric", style="cyan")
    files.add_column("Value", style="white")
    files.add_row("Total", str(analysis.files.total))
    files.add_row("Unique format", str(analysis.files.unique_format))
    files.add_row("Legacy format", str(analysis.files.legacy_format))
    files.add_row("Referenced", str(analysis.files.referenced))
    files.add_row("Orphaned", str(analysis.files.orphaned))
    console.print(files)

    if analysis.issues:
        console.print(_findings_table("Issues", analysis.issues))
    logger.info(
        f"Analysis complete: {analysis.categories.needs_migration} categories need migration, "
        f"{analysis.files.orphaned} orphaned files"
    )


@app.command("migrate")
def migrate_images(
    dry_run: bool = typer.Option(False, "--dry-run", help="Preview migration without changes"),
    no_backup: bool = typer.Option(False, "--no-backup", help="Skip backup artifact and file copies"),
    no_cleanup: bool = typer.Option(False, "--no-cleanup", help="Keep orphaned files"),
    no_verify: bool = typer.Option(False, "--no-verify", help="Skip the final integrity check"),
    force: bool = typer.Option(False, "--force", help="Skip confirmation prompt"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
):
    """
    Migrate category images to the unique naming scheme.

    Stages: analyze, backup, migrate, cleanup, verify.
    """
    logger = setup_cli_logging("migrate", verbose=verbose)
    options = MigrationOptions(
        dry_run=dry_run,
        create_backup=not no_backup,
        cleanup_orphans=not no_cleanup,
        verify=not no_verify,
    )
    logger.info(f"Starting image migration with options: {options.model_dump()}")

    header = Table(title="Category Image Migration")
    header.add_column("Setting", style="cyan")
    header.add_column("Value", style="white")
    header.add_row("Images directory", str(settings.images_path))
    header.add_row("Backup directory", str(settings.backup_path))
    header.add_row("Mode", "DRY RUN" if dry_run else "LIVE")
    header.add_row("Backups", "enabled" if options.create_backup else "DISABLED")
    header.add_row("Cleanup orphans", str(options.cleanup_orphans))
    header.add_row("Verify", str(options.verify))
    console.print(header)

    if not dry_run and not force:
        if not confirm_action("\n⚠ This will rename and delete image files. Continue?", default=False):
            logger.info("Migration cancelled by user")
            console.print("[yellow]Migration cancelled[/yellow]")
            raise typer.Exit(code=0)

    with _record_index() as record_index:
        report = MigrationOrchestrator(_file_store(), record_index).run(options)

    for warning in report.warnings:
        console.print(f"[yellow]⚠ {warning}[/yellow]")

    results = [part for part in (report.migrated, report.cleaned) if part is not None]
    if results:
        console.print(_correction_table("Migration Summary", results))
        if verbose or dry_run:
            _print_details(results)
    if report.integrity_result is not None:
        console.print(_integrity_table(report.integrity_result))
    if report.backup_path:
        console.print(f"Backup: [cyan]{report.backup_path}[/cyan]")

    if report.failed_stage is not None:
        logger.error(f"Migration failed at stage {report.failed_stage.value}: {report.error}")
        console.print(f"[red]✗ Migration failed at stage '{report.failed_stage.value}': {report.error}[/red]")
        raise typer.Exit(code=1)

    if dry_run:
        logger.info("Dry run complete")
        console.print("[green]✓ Dry run complete. No changes applied.[/green]")
        raise typer.Exit(code=0)

    if not report.success or report.verified is False:
        logger.warning(f"Migration finished with issues: item_errors={report.item_errors}, verified={report.verified}")
        console.print("[yellow]⚠ Migration finished with remaining issues[/yellow]")
        raise typer.Exit(code=1)

    logger.info("Migration complete")
    console.print("[green]✓ Migration complete[/green]")


@app.command("verify")
def verify_images(
    as_json: bool = typer.Option(False, "--json", help="Print the integrity result as JSON"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
):
    """Check category image integrity. Exits 1 when issues are found."""
    logger = setup_cli_logging("verify", verbose=verbose)

    with _record_index() as record_index:
        try:
            result = IntegrityChecker(_file_store(), record_index).check()
        except ImageGuardException as e:
            _fail(logger, e, "Integrity check failed")

    if as_json:
        typer.echo(result.model_dump_json(indent=2))
        if not result.is_healthy:
            logger.warning(f"Integrity check found {result.total_issues} issues")
            raise typer.Exit(code=1)
        logger.info("Integrity check passed")
        return

    console.print(_integrity_table(result))
    findings = [
        finding for finding in result.findings()
        if result.missing_reference_is_issue or finding.type != FindingType.MISSING_REFERENCE
    ]
    if findings:
        console.print(_findings_table("Findings", findings))

    if not result.is_healthy:
        logger.warning(f"Integrity check found {result.total_issues} issues")
        console.print(f"[red]✗ {result.total_issues} integrity issues found[/red]")
        raise typer.Exit(code=1)

    logger.info("Integrity check passed")
    console.print("[green]✓ All category images are consistent[/green]")


@app.command("cleanup")
def cleanup_images(
    dry_run: bool = typer.Option(False, "--dry-run", help="Preview cleanup without deleting files"),
    no_backup: bool = typer.Option(False, "--no-backup", help="Delete without keeping backup copies"),
    force: bool = typer.Option(False, "--force", help="Skip confirmation prompt"),
    as_json: bool = typer.Option(False, "--json", help="Print the cleanup result as JSON"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
):
    """Remove image files that no category references."""
    logger = setup_cli_logging("cleanup", verbose=verbose)

    if not dry_run and not force and no_backup:
        if not confirm_action("\n⚠ Orphaned files will be deleted without backup. Continue?", default=False):
            logger.info("Cleanup cancelled by user")
            console.print("[yellow]Cleanup cancelled[/yellow]")
            raise typer.Exit(code=0)

    with _record_index() as record_index:
        try:
            result = Corrector(_file_store(), record_index).remove_orphans(
                dry_run=dry_run,
                create_backup=not no_backup,
            )
        except ImageGuardException as e:
            _fail(logger, e, "Cleanup failed")

    if as_json:
        typer.echo(result.model_dump_json(indent=2))
    else:
        console.print(_correction_table("Orphan Cleanup", [result]))
        _print_details([result])
    logger.info(
        f"Cleanup complete: {result.corrected_count} corrected, "
        f"{result.error_count} errors, {result.bytes_freed} bytes freed"
    )

    if result.error_count:
        raise typer.Exit(code=1)


@app.command("status")
def health_status(
    as_json: bool = typer.Option(False, "--json", help="Print the health status as JSON"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
):
    """Show the health score and top recommendations."""
    logger = setup_cli_logging("status", verbose=verbose)

    with _record_index() as record_index:
        try:
            status = HealthReporter(_file_store(), record_index).status()
        except ImageGuardException as e:
            _fail(logger, e, "Health check failed")

    if as_json:
        typer.echo(status.model_dump_json(indent=2))
        logger.info(f"Health status: {status.health_score}% ({status.status.value})")
        return

    style = STATUS_STYLES[status.status]
    console.print(Panel(
        f"Health score: [{style}]{status.health_score}%[/{style}] ({status.status.value})\n"
        f"Files: {status.summary.total_files}   Issues: {status.summary.total_issues}",
        title="Category Image Health",
    ))
    for recommendation in status.recommendations:
        console.print(
            f"  • [{recommendation.priority.value}] {recommendation.title}: {recommendation.action}"
        )
    logger.info(f"Health status: {status.health_score}% ({status.status.value})")


@app.command("report")
def health_report(
    as_json: bool = typer.Option(False, "--json", help="Print the full report as JSON"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
):
    """Generate the full health report."""
    logger = setup_cli_logging("report", verbose=verbose)

    with _record_index() as record_index:
        try:
            report = HealthReporter(_file_store(), record_index).generate_report(include_details=as_json)
        except ImageGuardException as e:
            _fail(logger, e, "Health report failed")

    logger.info(f"Health report generated: {report.health_score}% ({report.status.value})")
    if as_json:
        typer.echo(report.model_dump_json(indent=2))
        return

    summary = Table(title=f"Health Report ({report.health_score}% {report.status.value})")
    summary.add_column("Metric", style="cyan")
    summary.add_column("Value", style="white")
    summary.add_row("Total files", str(report.summary.total_files))
    summary.add_row("Total issues", str(report.summary.total_issues))
    summary.add_row("Duplicate groups", str(report.summary.duplicate_groups))
    summary.add_row("Duplicate files", str(report.summary.duplicate_files))
    summary.add_row("Orphaned files", str(report.summary.orphaned_files))
    summary.add_row("Missing files", str(report.summary.missing_files))
    summary.add_row("Invalid naming", str(report.summary.invalid_naming))
    summary.add_row("Without image reference", str(report.summary.missing_references))
    summary.add_row("Wasted space", format_bytes(report.summary.wasted_bytes))
    summary.add_row("Duration", f"{report.duration_ms} ms")
    console.print(summary)

    if report.recommendations:
        recommendations = Table(title="Recommendations")
        recommendations.add_column("Priority", style="cyan")
        recommendations.add_column("Title", style="white")
        recommendations.add_column("Description", style="white")
        recommendations.add_column("Action", style="green")
        for recommendation in report.recommendations:
            description = recommendation.description
            if recommendation.estimated_savings:
                description = f"{description} (saves {recommendation.estimated_savings})"
            recommendations.add_row(
                recommendation.priority.value,
                recommendation.title,
                description,
                recommendation.action,
            )
        console.print(recommendations)


@app.command("stats")
def storage_stats(
    as_json: bool = typer.Option(False, "--json", help="Print the statistics as JSON"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
):
    """Show storage statistics of the images directory."""
    logger = setup_cli_logging("stats", verbose=verbose)

    with _record_index() as record_index:
        try:
            stats = HealthReporter(_file_store(), record_index).storage_statistics()
        except ImageGuardException as e:
            _fail(logger, e, "Storage statistics failed")

    if as_json:
        typer.echo(stats.model_dump_json(indent=2))
        logger.info(f"Storage statistics: {stats.total_files} files, {stats.total_size} bytes")
        return

    table = Table(title="Storage Statistics")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="white")
    table.add_row("Total files", str(stats.total_files))
    table.add_row("Total size", format_bytes(stats.total_size))
    table.add_row("Average size", format_bytes(stats.average_size))
    table.add_row("Categories", str(stats.total_categories))
    table.add_row("Categories with images", str(stats.categories_with_images))
    table.add_row("Storage efficiency", f"{stats.storage_efficiency}%")
    console.print(table)

    if stats.largest_files:
        largest = Table(title="Largest Files")
        largest.add_column("File", style="white")
        largest.add_column("Size", style="cyan")
        for item in stats.largest_files:
            largest.add_row(item.filename, format_bytes(item.size_bytes))
        console.print(largest)
    logger.info(f"Storage statistics: {stats.total_files} files, {stats.total_size} bytes")


@app.command("duplicates")
def list_duplicates(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
):
    """List groups of byte-identical images."""
    logger = setup_cli_logging("duplicates", verbose=verbose)

    try:
        report = DuplicateDetector(_file_store()).detect()
    except ImageGuardException as e:
        _fail(logger, e, "Duplicate scan failed")

    if not report.groups:
        console.print("[green]No duplicate images found.[/green]")
    else:
        table = Table(title="Duplicate Images")
        table.add_column("Hash", style="cyan")
        table.add_column("Files", style="white")
        table.add_column("Size", style="white")
        table.add_column("Wasted", style="yellow")
        for group in report.groups:
            table.add_row(
                group.content_hash[:12],
                "\n".join(group.files),
                format_bytes(group.size_bytes),
                format_bytes(group.wasted_bytes),
            )
        console.print(table)
        console.print(
            f"{report.duplicate_files} duplicate files, "
            f"{format_bytes(report.total_wasted_bytes)} wasted"
        )

    for filename in report.unreadable:
        console.print(f"[yellow]⚠ Could not read {filename}[/yellow]")
    logger.info(f"Duplicate scan: {len(report.groups)} groups, {report.duplicate_files} duplicate files")


@app.command("correct")
def correct_images(
    dry_run: bool = typer.Option(False, "--dry-run", help="Preview corrections without changes"),
    no_backup: bool = typer.Option(False, "--no-backup", help="Skip backup copies"),
    force: bool = typer.Option(False, "--force", help="Skip confirmation prompt"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
):
    """Fix naming, missing files, duplicates and orphans in one pass."""
    logger = setup_cli_logging("correct", verbose=verbose)

    if not dry_run and not force:
        if not confirm_action("\n⚠ This will rename and delete image files. Continue?", default=False):
            logger.info("Correction cancelled by user")
            console.print("[yellow]Correction cancelled[/yellow]")
            raise typer.Exit(code=0)

    with _record_index() as record_index:
        try:
            outcome = Corrector(_file_store(), record_index).fix_all(
                dry_run=dry_run,
                create_backup=not no_backup,
            )
        except ImageGuardException as e:
            _fail(logger, e, "Correction failed")

    parts = [outcome.naming, outcome.missing, outcome.duplicates, outcome.orphans]
    console.print(_correction_table("Corrections", parts))
    if verbose or dry_run:
        _print_details(parts)
    logger.info(
        f"Corrections complete: {outcome.corrected_count} corrected, "
        f"{outcome.skipped_count} skipped, {outcome.error_count} errors"
    )

    if outcome.error_count:
        raise typer.Exit(code=1)


@app.command("rollback")
def rollback_migration(
    backup: Path = typer.Argument(..., help="Path of a migration backup artifact"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Preview rollback without changes"),
    force: bool = typer.Option(False, "--force", help="Skip confirmation prompt"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
):
    """Restore files and category image paths from a migration backup."""
    logger = setup_cli_logging("rollback", verbose=verbose)

    if not dry_run and not force:
        if not confirm_action(f"\n⚠ This will restore the state captured in {backup.name}. Continue?", default=False):
            logger.info("Rollback cancelled by user")
            console.print("[yellow]Rollback cancelled[/yellow]")
            raise typer.Exit(code=0)

    with _record_index() as record_index:
        try:
            result = MigrationOrchestrator(_file_store(), record_index).rollback(backup, dry_run=dry_run)
        except BackupArtifactError as e:
            _fail(logger, e, "Invalid backup")
        except ImageGuardException as e:
            _fail(logger, e, "Rollback failed")

    parts = [result.files_restored, result.records, result.files_removed]
    console.print(_correction_table("Rollback", parts))
    if verbose or dry_run:
        _print_details(parts)

    if not result.success:
        logger.warning(f"Rollback finished with {result.error_count} errors")
        console.print(f"[yellow]⚠ Rollback finished with {result.error_count} errors[/yellow]")
        raise typer.Exit(code=1)

    if dry_run:
        logger.info("Rollback dry run complete")
        console.print("[green]✓ Dry run complete. No changes applied.[/green]")
        return

    logger.info("Rollback complete")
    console.print("[green]✓ Rollback complete[/green]")


@app.command("backups")
def list_backups(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
):
    """List migration backup artifacts, newest first."""
    logger = setup_cli_logging("backups", verbose=verbose)

    with _record_index() as record_index:
        backups = MigrationOrchestrator(_file_store(), record_index).list_backups()

    if not backups:
        console.print(f"[yellow]No backups found in {settings.backup_path}[/yellow]")
        return

    table = Table(title="Migration Backups")
    table.add_column("File", style="cyan")
    table.add_column("Created", style="white")
    table.add_column("Categories", style="white")
    table.add_column("Files", style="white")
    table.add_column("Size", style="white")
    for info in backups:
        table.add_row(
            Path(info.path).name,
            info.timestamp or "unreadable",
            str(info.categories),
            str(info.files),
            format_bytes(info.size_bytes),
        )
    console.print(table)
    logger.info(f"Listed {len(backups)} backups")
