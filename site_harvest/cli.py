# === FILE: site_harvest/cli.py ===
#!/usr/bin/env python3
"""
Точка входа для запуска краулера SiteHarvest через командную строку.

Команды:
  crawl URL           Обойти сайт от URL (с вопросом о продолжении прерванной сессии)
  batch URL...        Пакетный обход списка URL без расширения фронтира
  sitemap [SOURCE]    Сравнить sitemap с прошлым снимком и обойти новые/изменённые URL
  history list        Показать журнал обойдённых страниц
  history delete ID   Удалить запись журнала
  history export      Выгрузить журнал в JSON и/или HTML
  config              Показать текущую конфигурацию

Общие опции:
  --config PATH       Путь к YAML/JSON-конфигу (default: configs/default.yaml, если есть)
  --log-level LEVEL   Уровень логирования (DEBUG, INFO, ...)
  --log-file PATH     Файл для логов (stderr, если не указан)
  --log-format FORMAT Формат логирования

Дополнительно:
  --version, -v       Показать версию SiteHarvest

Пример:
  site_harvest crawl https://example.com --max-pages 30 --resume
"""
import asyncio
import json
import sys
from pathlib import Path

import click

from site_harvest import __version__
from site_harvest.config import load_config
from site_harvest.engine import Engine
from site_harvest.errors import HarvestError
from site_harvest.logger import DEFAULT_FORMAT, init_logging
from site_harvest.report.html_report import render_html
from site_harvest.report.json_report import render_history_json

CONTEXT_SETTINGS = dict(help_option_names=["--help"])


def print_error(message: str):
    click.secho(message, fg='red', err=True)
    sys.exit(1)


def build_engine(cfg) -> Engine:
    """Фабрика Engine; тесты подменяют её, чтобы не ходить в сеть."""
    return Engine(cfg, status=click.echo)


def _run(coro):
    try:
        return asyncio.run(coro)
    except (HarvestError, ValueError, OSError) as e:
        print_error(f'Ошибка обхода: {e}')


@click.group(context_settings=CONTEXT_SETTINGS)
@click.version_option(__version__, '--version', '-v', message='SiteHarvest, version %(version)s')
@click.option(
    '--config', '-c', 'config_path',
    default=None,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help='Путь к файлу конфигурации YAML/JSON.'
)
@click.option(
    '--log-level', 'log_level',
    default='INFO', show_default=True,
    type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']),
    help='Уровень логирования'
)
@click.option(
    '--log-file', 'log_file',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Путь к файлу логов (stderr, если не указан)'
)
@click.option(
    '--log-format', 'log_format',
    default=DEFAULT_FORMAT,
    show_default=True,
    help='Строка формата для логов'
)
@click.pass_context
def cli(ctx, config_path, log_level, log_file, log_format):
    """Группа команд SiteHarvest CLI."""
    init_logging(
        level=log_level,
        log_file=str(log_file) if log_file else None,
        log_format=log_format
    )
    try:
        cfg = load_config(config_path)
    except Exception as e:
        print_error(f'Ошибка загрузки конфигурации: {e}')
    ctx.ensure_object(dict)
    ctx.obj['config'] = cfg


@cli.command('crawl', context_settings=CONTEXT_SETTINGS)
@click.argument('url')
@click.option(
    '--max-pages', '-n', 'max_pages',
    type=click.IntRange(min=1),
    default=10, show_default=True,
    help='Сколько страниц обойти'
)
@click.option(
    '--resume/--restart', 'resume',
    default=None,
    help='Продолжить прерванную сессию или начать заново (по умолчанию: спросить)'
)
@click.pass_context
def crawl(ctx, url, max_pages, resume):
    """Обойти сайт начиная с URL."""
    engine = build_engine(ctx.obj['config'])
    info = engine.resume_if_suspended(url)
    if info is None:
        from_scratch = True
    else:
        if resume is None:
            resume = click.confirm(
                f'Найдена прерванная сессия {info.root_key}: '
                f'{info.pages_crawled}/{info.max_pages} страниц, в очереди {info.queued}. Продолжить?',
                default=True,
            )
        from_scratch = not resume
    outcome = _run(engine.start_crawl(url, max_pages, from_scratch=from_scratch))
    click.echo(f'Done: {outcome.pages_crawled} pages')


@cli.command('batch', context_settings=CONTEXT_SETTINGS)
@click.argument('urls', nargs=-1)
@click.option(
    '--file', '-f', 'url_file',
    default=None,
    type=click.File('r', encoding='utf-8'),
    help='Файл со списком URL (по одному в строке)'
)
@click.option('--resume', is_flag=True, help='Продолжить прерванный пакетный обход')
@click.pass_context
def batch(ctx, urls, url_file, resume):
    """Пакетный обход списка URL без перехода по ссылкам."""
    seeds = list(urls)
    if url_file is not None:
        seeds.extend(line.strip() for line in url_file if line.strip())
    engine = build_engine(ctx.obj['config'])
    suspended = engine.resume_if_suspended(None) if resume else None
    if suspended is not None and seeds:
        print_error(
            f'Прерванный пакетный обход ({suspended.queued} URL в очереди) продолжается '
            f'без новых URL: уберите URL из команды или флаг --resume'
        )
    if not seeds and suspended is None:
        print_error('Нет URL для обхода')
    outcome = _run(engine.start_batch_crawl(seeds, from_scratch=not resume))
    click.echo(f'Done: {outcome.pages_crawled} pages')


@cli.command('sitemap', context_settings=CONTEXT_SETTINGS)
@click.argument('source', required=False)
@click.option(
    '--policy', 'policy',
    default=None,
    type=click.Choice(['prepend', 'append']),
    help='Новые/изменённые URL в начало или в конец (default: из конфига)'
)
@click.option('--dry-run', is_flag=True, help='Только показать план, без обхода')
@click.pass_context
def sitemap(ctx, source, policy, dry_run):
    """Сравнить sitemap с прошлым снимком и обойти новые и изменённые страницы."""
    engine = build_engine(ctx.obj['config'])
    entries = _run(engine.load_sitemap_snapshot(source))
    plan = engine.plan_sitemap_batch(entries, policy)
    click.echo(
        f'Added: {len(plan.changes.added)}, changed: {len(plan.changes.changed)}, '
        f'to crawl: {len(plan.seeds)}'
    )
    if dry_run:
        for url in plan.seeds:
            click.echo(url)
        return
    if not plan.seeds:
        click.echo('Nothing to crawl')
        return
    outcome = _run(engine.start_batch_crawl(plan.seeds))
    click.echo(f'Done: {outcome.pages_crawled} pages')


@cli.group('history', context_settings=CONTEXT_SETTINGS)
def history():
    """Журнал обойдённых страниц."""


@history.command('list', context_settings=CONTEXT_SETTINGS)
@click.option('--json', 'as_json', is_flag=True, help='Вывести журнал в JSON')
@click.pass_context
def history_list(ctx, as_json):
    """Показать журнал, новые записи сверху."""
    engine = build_engine(ctx.obj['config'])
    results = engine.history.results()[::-1]
    if as_json:
        click.echo(json.dumps([r.to_dict() for r in results], ensure_ascii=False, indent=2))
        return
    if not results:
        click.echo('History is empty')
        return
    for r in results:
        click.echo(f'{r.id}\t{r.timestamp}\t{r.url}')


@history.command('delete', context_settings=CONTEXT_SETTINGS)
@click.argument('result_id', type=int)
@click.pass_context
def history_delete(ctx, result_id):
    """Удалить запись журнала по ID."""
    engine = build_engine(ctx.obj['config'])
    try:
        deleted = engine.delete_history(result_id)
    except HarvestError as e:
        print_error(f'Ошибка при удалении: {e}')
    if not deleted:
        print_error(f'Запись {result_id} не найдена')
    click.echo(f'Deleted {result_id}')


@history.command('export', context_settings=CONTEXT_SETTINGS)
@click.option(
    '--json', '-j', 'json_output',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Сохранить журнал в JSON-файл'
)
@click.option(
    '--html', '-h', 'html_output',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Сохранить журнал в HTML-файл'
)
@click.option(
    '--template', '-t', 'template_dir',
    default=None,
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help='Папка с Jinja2-шаблонами (default: встроенные)'
)
@click.pass_context
def history_export(ctx, json_output, html_output, template_dir):
    """Выгрузить журнал истории."""
    if not json_output and not html_output:
        print_error('Укажите --json и/или --html')
    results = build_engine(ctx.obj['config']).history.results()

    if json_output:
        try:
            saved_json = render_history_json(results, json_output)
            click.echo(f'JSON report: {saved_json}')
        except Exception as e:
            print_error(f'Ошибка при сохранении JSON: {e}')

    if html_output:
        try:
            saved_html = render_html(results, template_dir, html_output)
            click.echo(f'HTML report: {saved_html}')
        except Exception as e:
            print_error(f'Ошибка при сохранении HTML: {e}')


@cli.command('config', context_settings=CONTEXT_SETTINGS)
@click.pass_context
def show_config(ctx):
    """Показать текущую конфигурацию в JSON."""
    cfg = ctx.obj['config']
    click.echo(cfg.model_dump_json(indent=2))


if __name__ == "__main__":
    cli()
