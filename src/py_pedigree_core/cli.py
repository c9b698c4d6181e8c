# Copyright (c) 2025-2026 Gowtham Adamane Rao. All Rights Reserved.
#
# Licensed under the Prosperity Public License 3.0.0 (the "License").
# You may not use this file except in compliance with the License.
# You may obtain a copy of the License in the LICENSE file at the root
# of this repository, or at: https://prosperitylicense.com/versions/3.0.0
#
# Commercial use beyond a 30-day trial requires a separate license.
from enum import Enum
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .errors import PedigreeImportError
from .exporters.fhir import FhirExporter
from .exporters.ga4gh import Ga4ghExporter
from .exporters.questionnaire import QuestionnaireExporter
from .importers.base import ImportResult
from .importers.fhir import FhirImporter
from .importers.ga4gh import Ga4ghImporter
from .importers.questionnaire import QuestionnaireImporter
from .roles import classify_roles, role_to_fhir
from .terminology import Legends

app = typer.Typer(
    name="py-pedigree-core",
    help="Reconcile pedigrees from clinical FHIR, GA4GH pedigree FHIR and family history questionnaires."
)
console = Console()


class PedigreeFormat(str, Enum):
    fhir = "fhir"
    ga4gh = "ga4gh"
    questionnaire = "questionnaire"


class Privacy(str, Enum):
    all = "all"
    nopersonal = "nopersonal"
    minimal = "minimal"


class TermType(str, Enum):
    disorders = "disorders"
    phenotypes = "phenotypes"
    genes = "genes"


def import_file(path: Path, source: PedigreeFormat, legends: Legends) -> ImportResult:
    """Reads and imports one pedigree file in the given format."""
    data = path.read_text(encoding="utf-8")
    if source == PedigreeFormat.fhir:
        return FhirImporter(legends).import_pedigree(data)
    if source == PedigreeFormat.ga4gh:
        return Ga4ghImporter(legends).import_pedigree(data)
    return QuestionnaireImporter().import_pedigree(data)


def _fail(message: str):
    console.print(Panel(f"[bold red]{message}", title="[bold red]Error[/bold red]"))
    raise typer.Exit(code=1)


@app.command(name="convert", help="Convert a pedigree from one format to another.")
def convert(
    input_path: Path = typer.Argument(..., exists=True, dir_okay=False, help="The pedigree file to read."),
    source: PedigreeFormat = typer.Option(..., "--from", "-f", help="The format of the input file."),
    target: PedigreeFormat = typer.Option(..., "--to", "-t", help="The format to write."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Where to write the result. Printed when omitted."),
    privacy: Optional[Privacy] = typer.Option(None, "--privacy", "-p", help="Which personal details to export. Defaults to the configured privacy."),
    svg: Optional[Path] = typer.Option(None, "--svg", exists=True, dir_okay=False, help="An SVG drawing to embed in a GA4GH export."),
):
    """
    Imports the input, reconciling its records into one pedigree graph, and
    exports the graph in the target format. Records that could not be placed
    are reported but do not stop the conversion.
    """
    try:
        legends = Legends.from_settings()
        result = import_file(input_path, source, legends)
        privacy_level = privacy.value if privacy else None
        if target == PedigreeFormat.fhir:
            exported = FhirExporter(result.graph, privacy_level, legends).export()
        elif target == PedigreeFormat.ga4gh:
            drawing = svg.read_text(encoding="utf-8") if svg else None
            exported = Ga4ghExporter(result.graph, privacy_level, legends).export(svg=drawing)
        else:
            exported = QuestionnaireExporter(result.graph, privacy_level, legends).export()
    except PedigreeImportError as e:
        _fail(str(e))
    except Exception as e:
        console.print_exception()
        _fail(f"An error occurred during the conversion: {e}")

    if output:
        output.write_text(exported, encoding="utf-8")
        console.print(Panel(
            f"[bold green]Wrote the {target.value} pedigree to {output}.[/bold green]",
            title="[bold green]Conversion Complete[/bold green]"
        ))
    else:
        typer.echo(exported)


@app.command(name="roles", help="Print the kinship role of every person relative to the proband.")
def roles(
    input_path: Path = typer.Argument(..., exists=True, dir_okay=False, help="The pedigree file to read."),
    source: PedigreeFormat = typer.Option(..., "--from", "-f", help="The format of the input file."),
):
    try:
        result = import_file(input_path, source, Legends.from_settings())
    except PedigreeImportError as e:
        _fail(str(e))

    table = Table(title="Kinship Roles")
    table.add_column("Id", justify="right")
    table.add_column("Name")
    table.add_column("Role")
    table.add_column("Display")
    for person_id, role in classify_roles(result.graph).items():
        person = result.graph.person(person_id)
        name = " ".join(n for n in (person.f_name, person.l_name) if n) or person.id or ""
        table.add_row(str(person_id), name, role or "-", role_to_fhir(role)[1])
    console.print(table)


@app.command(name="terms", help="Search the disorder, phenotype or gene terminology.")
def terms(
    term_type: TermType = typer.Argument(..., help="The terminology to search."),
    term: str = typer.Argument(..., help="Text to look for in codes and displays."),
):
    legend = getattr(Legends.from_settings(), term_type.value)
    matches = legend.search(term)
    if not matches:
        console.print(f"[yellow]No {term_type.value} match '{term}'.[/yellow]")
        return
    table = Table(title=f"Matching {term_type.value}")
    table.add_column("Code")
    table.add_column("Display")
    for match in matches:
        table.add_row(match["value"], match["text"])
    console.print(table)


@app.command(name="validate", help="Import a pedigree and report whether it is consistent.")
def validate(
    input_path: Path = typer.Argument(..., exists=True, dir_okay=False, help="The pedigree file to read."),
    source: PedigreeFormat = typer.Option(..., "--from", "-f", help="The format of the input file."),
):
    """
    Runs the full import, including the structural checks of the graph.
    Exits with code 1 when the import fails.
    """
    try:
        result = import_file(input_path, source, Legends.from_settings())
    except PedigreeImportError as e:
        _fail(str(e))

    for reject in result.rejects:
        console.print(f"[yellow]Left out '{reject.reference}': {reject.reason}[/yellow]")
    people = sum(1 for _ in result.graph.persons())
    console.print(Panel(
        f"[bold green]{input_path.name} is a valid pedigree with {people} persons.[/bold green]",
        title="[bold green]Valid[/bold green]"
    ))


if __name__ == "__main__":
    app()
