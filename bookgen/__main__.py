"""
bookgen CLI
 • generate   one book from a premise or a template (optionally saved)
 • sizes / templates   what can be requested
 • books …    list / show / edit / regenerate / export / delete saved books
 • serve      the HTTP API (uvicorn)

Global flags: --config PATH (JSON overlay on the environment), --log-level.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import List, NoReturn

import typer
import uvicorn
from rich import print
from rich.table import Table

from bookgen.api import create_app
from bookgen.config import SIZE_PROFILES, Settings
from bookgen.engine import logconf
from bookgen.engine.metrics import calculate_metrics
from bookgen.engine.pipeline import BookPipeline, handle_generate, parse_request
from bookgen.errors import BookGenError
from bookgen.export import FORMATS, export
from bookgen.store import BookLibrary, JsonRecordStore
from bookgen import templates as tpl

app = typer.Typer(pretty_exceptions_show_locals=False, no_args_is_help=True)
books = typer.Typer(help="Saved books", no_args_is_help=True)
app.add_typer(books, name="books")

USER_OPT = typer.Option(..., "--user", "-u", envvar="BOOKGEN_USER", help="Owner id")


def _settings(ctx: typer.Context) -> Settings:
    return ctx.obj


def _library(ctx: typer.Context, with_pipeline: bool = False) -> BookLibrary:
    s = _settings(ctx)
    return BookLibrary(JsonRecordStore(s.data_dir), BookPipeline.from_settings(s) if with_pipeline else None)


def _fail(e: BookGenError) -> NoReturn:
    print(f"[red]✘ {e.label}[/]")
    for issue in e.issues:
        print(f"  [red]•[/] {issue}")
    print(f"[yellow]{e.solution}[/]")
    raise typer.Exit(1)


@app.callback()
def main(
    ctx: typer.Context,
    config: Path | None = typer.Option(None, "--config", exists=True, dir_okay=False),
    log_level: str | None = typer.Option(None, "--log-level"),
):
    try:
        settings = Settings.from_env(config)
    except BookGenError as e:
        _fail(e)
    if log_level:
        settings = settings.model_copy(update={"log_level": log_level})
    try:
        logconf.init(settings.log_level, settings.log_dir)
        settings.validate_profiles()
    except BookGenError as e:
        _fail(e)
    ctx.obj = settings


# ═════════ generate ═════════
@app.command()
def generate(
    ctx: typer.Context,
    description: str | None = typer.Option(None, "--description", "-d", help="Book premise"),
    size: str | None = typer.Option(None, "--size", "-s", help=f"One of: {', '.join(SIZE_PROFILES)}"),
    genre: str | None = typer.Option(None, "--genre"),
    audience: str | None = typer.Option(None, "--audience"),
    chapters: int | None = typer.Option(None, "--chapters", min=1, max=50),
    template: str | None = typer.Option(None, "--template", "-t", help="Start from a template id"),
    user: str | None = typer.Option(None, "--user", "-u", envvar="BOOKGEN_USER", help="Save for this owner"),
    out: Path | None = typer.Option(None, "--out", "-o", help="Write the JSON response here"),
    fmt: List[str] = typer.Option([], "--export", "-e", help=f"Also export ({'/'.join(FORMATS)})"),
):
    """Generate a book."""
    body: dict = {}
    if template:
        t = tpl.get_template(template)
        if t is None:
            print(f"[red]Unknown template {template!r}[/] – see `bookgen templates`")
            raise typer.Exit(1)
        body = {"description": t.prompt, "size": t.recommended_size, "genre": t.genre, "audience": t.audience}
        print(f"[yellow]Using template {t.title}[/]")

    if description:
        body["description"] = description
    if "description" not in body:
        body["description"] = typer.prompt("Premise")
    body["size"] = size or body.get("size") or typer.prompt("Size", default="small")
    if genre:
        body["genre"] = genre
    if audience:
        body["audience"] = audience
    if chapters:
        body["chapterCount"] = chapters

    settings = _settings(ctx)
    pipeline = BookPipeline.from_settings(settings)
    print("[bold cyan]─── Generating book ───[/]")
    status, payload, result = handle_generate(pipeline, body)

    if result is None:
        print(f"[red]✘ {payload['error']} ({status})[/]")
        for issue in payload.get("issues", []):
            print(f"  [red]•[/] {issue}")
        print(f"[yellow]{payload['solution']}[/]")
        if "details" in payload:
            print(f"[dim]{payload['details']}[/]")
        raise typer.Exit(1)

    doc, meta = result.document, result.metadata
    print(f"[green]✔ {doc.title}[/]")
    print(f"  {len(doc.chapters)} chapters · {meta.book_info.total_characters:,} characters · "
          f"~{meta.book_info.estimated_pages} pages · {meta.book_info.estimated_reading_time}")
    print(f"  model {meta.generation.model} · {meta.technical.mode} · "
          f"{meta.generation.tokens_used:,} tokens · {meta.generation.generation_time_ms / 1000:.1f}s")
    if meta.technical.originality_fallback:
        print("[yellow]  The model echoed the premise; a synthesized draft was used instead.[/]")
    for issue in meta.issues:
        print(f"[yellow]  • {issue}[/]")

    if user:
        record = BookLibrary(JsonRecordStore(settings.data_dir)).create(
            user, parse_request(body), doc, meta)
        payload["bookId"] = record.id
        print(f"  saved as [bold]{record.id}[/]")
    if out:
        out.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
        print(f"  response written to {out}")
    for f in fmt:
        try:
            print(f"  exported {export(doc, f, settings.data_dir / 'exports')}")
        except BookGenError as e:
            _fail(e)


# ═════════ catalogue ═════════
@app.command()
def sizes():
    """Show the size profiles."""
    table = Table("size", "chapters", "words/chapter", "pages", "tokens", "model")
    for p in SIZE_PROFILES.values():
        m = calculate_metrics(p, p.chapters)
        table.add_row(p.key, str(p.chapters), f"{p.min_words}-{p.max_words}",
                      f"{m.min_pages}-{m.max_pages}", f"{m.estimated_tokens:,} / {p.token_budget:,}", p.model)
    print(table)


@app.command()
def templates(
    search: str | None = typer.Option(None, "--search"),
    genre: str | None = typer.Option(None, "--genre"),
    audience: str | None = typer.Option(None, "--audience"),
    random_pick: bool = typer.Option(False, "--random"),
):
    """List starter templates."""
    found = list(tpl.TEMPLATES)
    if random_pick:
        found = [tpl.random_template()]
    if search:
        found = [t for t in found if t in tpl.search(search)]
    if genre:
        found = [t for t in found if t in tpl.by_genre(genre)]
    if audience:
        found = [t for t in found if t in tpl.by_audience(audience)]
    table = Table("id", "title", "genre", "audience", "size")
    for t in found:
        table.add_row(t.id, t.title, t.genre, t.audience, t.recommended_size)
    print(table)


# ═════════ saved books ═════════
@books.command("list")
def books_list(ctx: typer.Context, user: str = USER_OPT):
    table = Table("id", "title", "size", "chapters", "created")
    for r in _library(ctx).list(user):
        table.add_row(r.id, r.document.title, r.request.size, str(len(r.document.chapters)), r.created_at[:19])
    print(table)


@books.command("show")
def books_show(ctx: typer.Context, book_id: str, user: str = USER_OPT,
               full: bool = typer.Option(False, "--full")):
    try:
        r = _library(ctx).get(user, book_id)
    except BookGenError as e:
        _fail(e)
    print(f"[bold]{r.document.title}[/]\n\n{r.document.synopsis}\n")
    for i, ch in enumerate(r.document.chapters, 1):
        print(f"[cyan]Chapter {i}: {ch.title}[/]")
        print(ch.content if full else f"  {ch.content[:160]}…")


@books.command("delete")
def books_delete(ctx: typer.Context, book_id: str, user: str = USER_OPT,
                 yes: bool = typer.Option(False, "--yes", "-y")):
    if not yes:
        typer.confirm(f"Delete {book_id}?", abort=True)
    try:
        _library(ctx).delete(user, book_id)
    except BookGenError as e:
        _fail(e)
    print(f"[green]✔ deleted {book_id}[/]")


@books.command("export")
def books_export(ctx: typer.Context, book_id: str, fmt: str = typer.Argument("txt"),
                 user: str = USER_OPT, dest: Path = typer.Option(Path("exports"), "--dest")):
    try:
        record = _library(ctx).get(user, book_id)
        path = export(record.document, fmt, dest)
    except BookGenError as e:
        _fail(e)
    print(f"[green]✔ {path}[/]")


@books.command("regenerate")
def books_regenerate(ctx: typer.Context, book_id: str, chapter: int, user: str = USER_OPT):
    """Rewrite one chapter."""
    try:
        r = _library(ctx, with_pipeline=True).regenerate_chapter(user, book_id, chapter)
    except BookGenError as e:
        _fail(e)
    print(f"[green]✔ chapter {chapter} rewritten: {r.document.chapters[chapter - 1].title}[/]")


@books.command("edit")
def books_edit(
    ctx: typer.Context,
    book_id: str,
    user: str = USER_OPT,
    title: str | None = typer.Option(None, "--title"),
    synopsis: str | None = typer.Option(None, "--synopsis"),
    chapter: int | None = typer.Option(None, "--chapter", help="Chapter to edit"),
    chapter_title: str | None = typer.Option(None, "--chapter-title"),
    content_file: Path | None = typer.Option(None, "--content-file", exists=True, dir_okay=False),
    add_chapter: bool = typer.Option(False, "--add-chapter"),
    remove_chapter: int | None = typer.Option(None, "--remove-chapter"),
):
    """Edit title, synopsis or chapters."""
    lib = _library(ctx)
    content = content_file.read_text(encoding="utf-8") if content_file else None
    try:
        if title is not None or synopsis is not None:
            lib.update(user, book_id, title=title, synopsis=synopsis)
        if chapter is not None:
            lib.edit_chapter(user, book_id, chapter, title=chapter_title, content=content)
        elif add_chapter:
            lib.add_chapter(user, book_id, chapter_title, content)
        if remove_chapter is not None:
            lib.remove_chapter(user, book_id, remove_chapter)
        record = lib.get(user, book_id)
    except BookGenError as e:
        _fail(e)
    print(f"[green]✔ {record.document.title}: {len(record.document.chapters)} chapters[/]")


# ═════════ HTTP ═════════
@app.command()
def serve(
    ctx: typer.Context,
    host: str = typer.Option("127.0.0.1", "--host"),
    port: int = typer.Option(8000, "--port"),
):
    """Run the HTTP API."""
    uvicorn.run(create_app(_settings(ctx)), host=host, port=port, log_config=None)


if __name__ == "__main__":
    app()
