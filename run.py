#!/usr/bin/env python3
"""
FormHawk - Form Mutation & Audit Deduplication Engine

Command line entry point.
"""

import asyncio
import logging
import click
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def _setup_logging(verbose: bool):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s'
    )


def _make_requester(cfg):
    from formhawk.scanner.core.requester import AsyncRequester

    return AsyncRequester(
        timeout=cfg.SCANNER_TIMEOUT,
        max_concurrent=cfg.SCANNER_CONCURRENT_REQUESTS,
        delay=cfg.SCANNER_DELAY_BETWEEN_REQUESTS,
        max_retries=cfg.SCANNER_MAX_RETRIES,
        verify_ssl=cfg.SCANNER_VERIFY_SSL
    )


async def _load_forms(requester, url, cfg):
    from formhawk.scanner.core.parser import forms_from_response

    response = await requester.get(url, use_cache=False)
    if response.error:
        raise click.ClickException(f"Could not fetch {url}: {response.error}")
    return forms_from_response(response, cfg.HTML_PARSER)


def _with_nonce(form, nonce):
    from formhawk.scanner.core.errors import FieldNotFound

    if not nonce:
        return form
    try:
        return form.with_nonce_field(nonce)
    except FieldNotFound as e:
        click.secho(f"  [!] {e} Nonce refresh disabled for this form.", fg='yellow')
        return form


@click.group()
@click.version_option(version='1.0.0', prog_name='FormHawk')
@click.option('--env', default=None, help='Configuration name (development, testing, production)')
@click.pass_context
def cli(ctx, env):
    """FormHawk - Form Mutation & Audit Deduplication Engine"""
    from formhawk.config import get_config

    ctx.ensure_object(dict)
    ctx.obj['config'] = get_config(env)


@cli.command()
@click.argument('url')
@click.option('--verbose', '-v', is_flag=True, help='Verbose output')
@click.pass_context
def forms(ctx, url, verbose):
    """List the forms found on a page."""
    _setup_logging(verbose)
    cfg = ctx.obj['config']

    async def run():
        async with _make_requester(cfg) as requester:
            return await _load_forms(requester, url, cfg)

    found = asyncio.run(run())
    click.echo(f"Found {len(found)} form(s) on {url}")
    for index, form in enumerate(found):
        click.secho(f"\n[{index}] {form.method.upper()} {form.action}", fg='cyan')
        click.echo(f"    id: {form.canonical_id}")
        for name, spec in form.fields.items():
            click.echo(f"    - {name} ({spec.field_type}) = {spec.value!r}")


@cli.command()
@click.argument('url')
@click.option('--seed', '-s', required=True, help='Payload to inject')
@click.option('--form', 'form_index', default=0, help='Index of the form on the page')
@click.option('--skip-original', is_flag=True, help='Do not add original/sample value variants')
@click.option('--nonce', default=None, help='Name of the field holding a nonce')
@click.option('--verbose', '-v', is_flag=True, help='Verbose output')
@click.pass_context
def mutate(ctx, url, seed, form_index, skip_original, nonce, verbose):
    """Print the variants generated for one form."""
    from formhawk.scanner.core.filler import SampleFiller
    from formhawk.scanner.core.mutator import MutationOptions, mutate as mutate_form

    _setup_logging(verbose)
    cfg = ctx.obj['config']

    async def run():
        async with _make_requester(cfg) as requester:
            return await _load_forms(requester, url, cfg)

    found = asyncio.run(run())
    if form_index >= len(found):
        raise click.ClickException(f"No form #{form_index} on {url} ({len(found)} found)")

    form = _with_nonce(found[form_index], nonce)
    variants = mutate_form(
        form,
        seed,
        MutationOptions(skip_original=skip_original or cfg.SKIP_ORIGINAL),
        filler=SampleFiller(cfg.SAMPLE_DEFAULT_VALUE)
    )
    click.echo(f"{len(variants)} variant(s)")
    if form.has_nonce:
        click.echo(f"Nonce field: {form.nonce_name} (refreshed before each submission)")
    for variant in variants:
        label = variant.alteration_state.value
        if variant.altered_field:
            label += f" [{variant.altered_field}]"
        click.secho(f"  {label}", fg='yellow')
        click.echo(f"    {variant.request_body()}")


@cli.command()
@click.argument('url')
@click.option('--seed', '-s', required=True, help='Payload to inject')
@click.option('--nonce', default=None, help='Name of the field holding a nonce')
@click.option('--verbose', '-v', is_flag=True, help='Verbose output')
@click.pass_context
def audit(ctx, url, seed, nonce, verbose):
    """Submit the variants of every form on a page."""
    from formhawk.scanner.core.auditor import FormAuditor
    from formhawk.scanner.core.filler import SampleFiller
    from formhawk.scanner.core.identity import AuditedSet
    from formhawk.scanner.core.mutator import MutationOptions
    from formhawk.scanner.core.nonce import NonceRefresher
    from formhawk.scanner.core.submitter import FormSubmitter

    _setup_logging(verbose)
    cfg = ctx.obj['config']

    async def run():
        async with _make_requester(cfg) as requester:
            submitter = FormSubmitter(
                requester,
                refresher=NonceRefresher(requester.fetch, cfg.NONCE_REFRESH_TIMEOUT, cfg.HTML_PARSER)
            )
            auditor = FormAuditor(submitter, AuditedSet(), SampleFiller(cfg.SAMPLE_DEFAULT_VALUE))
            options = MutationOptions(skip_original=cfg.SKIP_ORIGINAL)

            results = []
            for form in await _load_forms(requester, url, cfg):
                results.extend(await auditor.audit(_with_nonce(form, nonce), seed, options))
            return results

    results = asyncio.run(run())

    click.echo("-" * 50)
    for variant, response in results:
        color = 'green' if response.is_success else 'red'
        click.secho(
            f"  [{response.status}] {variant.method.upper()} {variant.action} "
            f"({variant.alteration_state.value}, {response.mode.value})",
            fg=color
        )
    click.echo("-" * 50)
    click.echo(f"  Submitted: {len(results)}")


if __name__ == '__main__':
    cli()
