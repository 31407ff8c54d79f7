#!/usr/bin/env python3
"""
Prospect CRM Terminal CLI
Command-line interface for the sales team: establishments, contacts, actions,
competitor intelligence, suggestions, reference lists and reporting.

Every command logs through log_call. A failing command prints one error line
and returns normally.
"""

import logging
from datetime import date, timedelta
from typing import Optional

import click

from prospectcrm.engine import (
    actions, auth, competitors, contacts, establishments, geo, parametrage,
    reporting, session, suggestions,
)
from prospectcrm.db.schema import init_schema
from prospectcrm.engine.editor import EstablishmentEditor
from prospectcrm.models import (
    Action, Contact, ACTION_TYPES, ACTION_STATUSES, ACTION_TYPE_LABELS, ACTION_STATUS_LABELS,
    ESTABLISHMENT_STATUSES, ESTABLISHMENT_STATUS_LABELS, PARAMETRAGE_CATEGORIES,
    SUGGESTION_TYPES, SUGGESTION_PRIORITIES,
)
from prospectcrm.logging_config import configure_logging, log_call

DATE = click.DateTime(formats=['%Y-%m-%d'])


def _fail(command: str, exc: Exception):
    """One-line error for the user, full detail in the log."""
    logger = logging.getLogger("prospectcrm")
    if isinstance(exc, ValueError):
        logger.warning(f"{command} | {exc}")
    else:
        logger.error(f"{command} failed: {exc}", exc_info=True)
    click.echo(f"Error: {exc}", err=True)


def _context() -> session.UserViewContext:
    """The signed-in user's view context, with any saved view selection applied."""
    current = auth.get_session(auth.load_token())
    if current is None:
        raise ValueError("Not signed in. Run: prospectcrm auth login")
    ctx = session.load_user_view(current.user.id, current.user.email)
    view = auth.load_view_selection()
    if view and ctx.is_admin and view in {o.id for o in ctx.users}:
        session.select_user(ctx, view)
    return ctx


def _as_date(value) -> Optional[date]:
    return value.date() if value else None


def _status_label(statut: str) -> str:
    return ESTABLISHMENT_STATUS_LABELS.get(statut, statut)


@click.group()
def cli():
    """Prospect CRM - Sales prospecting and client follow-up"""
    configure_logging()


@cli.command('init-db')
@log_call
def init_db():
    """Create enum types and tables (idempotent)"""
    try:
        init_schema()
        click.echo("✓ Database schema is up to date")
    except Exception as e:
        _fail("init-db", e)


# =============================================================================
# AUTH
# =============================================================================

@cli.group('auth')
def auth_group():
    """Sign up, sign in and sign out"""
    pass


@auth_group.command('signup')
@click.option('--email', prompt=True)
@click.option('--prenom', prompt='First name')
@click.option('--nom', prompt='Last name')
@click.password_option()
@log_call
def auth_signup(email, prenom, nom, password):
    """Create an account and sign in"""
    try:
        new_session = auth.sign_up(email, password, prenom, nom)
        auth.save_token(new_session)
        click.echo(f"✓ Account created, signed in as {new_session.user.email}")
    except Exception as e:
        _fail("auth signup", e)


@auth_group.command('login')
@click.option('--email', prompt=True)
@click.option('--password', prompt=True, hide_input=True)
@log_call
def auth_login(email, password):
    """Sign in with email and password"""
    try:
        new_session = auth.sign_in_with_password(email, password)
        auth.save_token(new_session)
        click.echo(f"✓ Signed in as {new_session.user.email}")
    except Exception as e:
        _fail("auth login", e)


@auth_group.command('logout')
@log_call
def auth_logout():
    """Sign out and forget the local session"""
    try:
        auth.sign_out(auth.load_token())
        auth.clear_token()
        click.echo("✓ Signed out")
    except Exception as e:
        _fail("auth logout", e)


@auth_group.command('whoami')
@log_call
def auth_whoami():
    """Show the signed-in user, role and current view"""
    try:
        ctx = _context()
        name = ctx.profile.label if ctx.profile else ctx.email
        click.echo(f"{name} <{ctx.email}>")
        click.echo(f"Role: {ctx.role}")
        click.echo(f"View: {ctx.selected_user_label}")
    except Exception as e:
        _fail("auth whoami", e)


@cli.command('view-as')
@click.argument('user_id', required=False)
@log_call
def view_as(user_id):
    """Admin: show data for one salesperson, or 'tous' for everyone"""
    try:
        ctx = _context()
        if not user_id:
            for option in ctx.users:
                marker = '*' if option.id == ctx.selected_user_id else ' '
                click.echo(f"{marker} {option.id:<38} {option.label}")
            return
        session.select_user(ctx, user_id)
        auth.save_view_selection(user_id)
        click.echo(f"✓ Now viewing: {ctx.selected_user_label}")
    except Exception as e:
        _fail("view-as", e)


# =============================================================================
# ESTABLISHMENTS
# =============================================================================

@cli.group('establishments')
def establishments_group():
    """Manage prospects, clients and former clients"""
    pass


@establishments_group.command('list')
@click.option('--statut', default='all',
              type=click.Choice(['all', 'archived'] + list(ESTABLISHMENT_STATUSES)),
              help='Status filter; archived lists inactive rows')
@click.option('--search', help='Search name, city, group, sector or activity')
@click.option('--groupe', help='Filter by group label')
@click.option('--secteur', help='Filter by sector label')
@click.option('--activite', help='Filter by activity label')
@click.option('--ville', help='Filter by city')
@log_call
def establishments_list(statut, search, groupe, secteur, activite, ville):
    """List establishments"""
    try:
        rows = establishments.list_establishments(
            statut=statut, search=search, groupe=groupe,
            secteur=secteur, activite=activite, ville=ville,
        )
    except Exception as e:
        _fail("establishments list", e)
        return

    if not rows:
        click.echo("No establishments found.")
        return

    click.echo(f"\nFound {len(rows)} establishments:\n")
    click.echo(f"{'Name':<30} {'Status':<14} {'City':<18} {'Group':<18} {'ID'}")
    click.echo("-" * 118)
    for r in rows:
        click.echo(
            f"{r.nom[:28]:<30} {_status_label(r.statut):<14} "
            f"{(r.ville or '')[:16]:<18} {(r.groupe or '')[:16]:<18} {r.id}"
        )


@establishments_group.command('show')
@click.argument('establishment_id')
@log_call
def establishments_show(establishment_id):
    """Show an establishment with its contacts, actions and competitor history"""
    try:
        editor = EstablishmentEditor.open(establishment_id, _context())
    except Exception as e:
        _fail("establishments show", e)
        return

    if editor.detail is None:
        logging.getLogger("prospectcrm").warning(f"establishments_show | id={establishment_id} not found")
        click.echo(f"Establishment {establishment_id} not found.", err=True)
        return

    detail = editor.detail
    est = detail.establishment
    click.echo(f"\n{'='*80}")
    click.echo(f"{est.nom}  [{_status_label(est.statut)}]{'' if est.actif else '  (archivé)'}")
    click.echo(f"{'='*80}")
    click.echo(f"Address:     {est.adresse or '(not set)'}")
    click.echo(f"City:        {' '.join(p for p in (est.code_postal, est.ville) if p) or '(not set)'}")
    click.echo(f"Group:       {detail.groupe or '(not set)'}")
    click.echo(f"Sector:      {detail.secteur or '(not set)'}")
    click.echo(f"Activity:    {detail.activite or '(not set)'}")
    click.echo(f"Competitor:  {detail.concurrent or '(not set)'}")
    if est.info_concurrent:
        click.echo(f"Competitor info: {est.info_concurrent}")
    if est.commentaire:
        click.echo(f"\nNotes:\n{est.commentaire}")

    click.echo(f"\nCONTACTS ({len(editor.contacts)})")
    for c in editor.contacts:
        details = ', '.join(p for p in (c.fonction, c.telephone, c.email) if p)
        click.echo(f"  {c.full_name}{f' ({details})' if details else ''}  [{c.id}]")

    click.echo(f"\nACTIONS ({len(editor.actions)})")
    for entry in editor.actions:
        a = entry.action
        click.echo(
            f"  [{a.date_action}] {ACTION_TYPE_LABELS.get(a.type, a.type)} - "
            f"{ACTION_STATUS_LABELS.get(a.statut_action, a.statut_action)}"
            f"{f' ({entry.user_label})' if entry.user_label else ''}  [{a.id}]"
        )
        if a.commentaire:
            click.echo(f"      {a.commentaire[:100]}")
        if a.relance_date:
            click.echo(f"      Relance: {a.relance_date}")

    click.echo(f"\nCOMPETITOR HISTORY ({len(editor.competitor_history)})")
    for h in editor.competitor_history:
        coef = '-' if h.coefficient is None else f"{h.coefficient:g}"
        rate = '-' if h.taux_horaire is None else f"{h.taux_horaire:g}"
        click.echo(f"  [{h.date_info}] {h.concurrent_nom}: coef {coef}, rate {rate}  [{h.id}]")
    click.echo()


@establishments_group.command('add')
@log_call
def establishments_add():
    """Add a new establishment (interactive)"""
    click.echo("\n=== ADD NEW ESTABLISHMENT ===\n")
    try:
        editor = EstablishmentEditor.new(_context())
        editor.change(
            nom=click.prompt("Name", type=str),
            statut=click.prompt("Status", type=click.Choice(ESTABLISHMENT_STATUSES), default='prospect'),
            adresse=click.prompt("Address", default="", show_default=False) or None,
            code_postal=click.prompt("Postal code", default="", show_default=False) or None,
            ville=click.prompt("City", default="", show_default=False) or None,
            commentaire=click.prompt("Notes", default="", show_default=False) or None,
        )
        for categorie, column in (('groupe', 'groupe_id'), ('secteur', 'secteur_id'), ('activite', 'activite_id')):
            entry_id = _prompt_reference(editor.references.get(categorie, []), categorie)
            if entry_id:
                editor.change(**{column: entry_id})

        establishment_id = editor.create()
        if establishment_id:
            click.echo(f"\n✓ Created establishment {establishment_id}: {editor.draft['nom']}")
        else:
            click.echo("Error: the establishment could not be created", err=True)
    except Exception as e:
        _fail("establishments add", e)


def _prompt_reference(entries, categorie: str) -> Optional[str]:
    """Pick a reference entry by number. Returns None if skipped."""
    if not entries:
        return None
    click.echo(f"\n{categorie.capitalize()}:")
    for i, entry in enumerate(entries, 1):
        click.echo(f"  {i}. {entry.valeur}")
    choice = click.prompt("Number (Enter to skip)", default=0, type=click.IntRange(0, len(entries)),
                          show_default=False)
    return entries[choice - 1].id if choice else None


@establishments_group.command('quick')
@click.argument('nom')
@click.option('--ville', help='City')
@click.option('--code-postal', help='Postal code')
@click.option('--statut', default='prospect', type=click.Choice(ESTABLISHMENT_STATUSES))
@click.option('--groupe-id')
@click.option('--secteur-id')
@click.option('--activite-id')
@click.option('--action', 'action_type', type=click.Choice(ACTION_TYPES), help='Log a first action')
@click.option('--action-date', type=DATE, help='First action date (default: today)')
@click.option('--action-statut', type=click.Choice(ACTION_STATUSES), default='a_venir')
@click.option('--commentaire', help='First action comment')
@log_call
def establishments_quick(nom, ville, code_postal, statut, groupe_id, secteur_id, activite_id,
                         action_type, action_date, action_statut, commentaire):
    """Quick-create an establishment, optionally with a first action"""
    try:
        ctx = _context()
        first_action = None
        if action_type:
            first_action = Action(
                type=action_type,
                date_action=_as_date(action_date) or date.today(),
                statut_action=action_statut,
                commentaire=commentaire,
            )
        establishment_id = establishments.quick_create(
            nom, owner_id=ctx.current_user_id, statut=statut, ville=ville, code_postal=code_postal,
            groupe_id=groupe_id, secteur_id=secteur_id, activite_id=activite_id,
            first_action=first_action,
        )
        click.echo(f"✓ Created establishment {establishment_id}: {nom}")
    except Exception as e:
        _fail("establishments quick", e)


@establishments_group.command('edit')
@click.argument('establishment_id')
@click.option('--nom')
@click.option('--statut', type=click.Choice(ESTABLISHMENT_STATUSES))
@click.option('--adresse')
@click.option('--code-postal')
@click.option('--ville')
@click.option('--commentaire')
@click.option('--groupe-id')
@click.option('--secteur-id')
@click.option('--activite-id')
@click.option('--concurrent-id')
@click.option('--info-concurrent')
@click.option('--coefficient', help='Competitor coefficient (recorded in the history)')
@log_call
def establishments_edit(establishment_id, coefficient, **options):
    """Edit an establishment (use options to set fields)"""
    updates = {k: v for k, v in options.items() if v is not None}
    if coefficient is not None:
        updates['coefficient_concurrent'] = coefficient

    if not updates:
        click.echo("No updates specified. See --help for the editable fields.", err=True)
        return

    try:
        editor = EstablishmentEditor.open(establishment_id, _context())
        if editor.detail is None:
            click.echo(f"Establishment {establishment_id} not found.", err=True)
            return
        editor.change(**updates)
        editor.close()
        click.echo(f"✓ Updated establishment {establishment_id}")
    except Exception as e:
        _fail("establishments edit", e)


@establishments_group.command('archive')
@click.argument('establishment_id')
@log_call
def establishments_archive(establishment_id):
    """Archive an establishment (a client becomes a former client)"""
    try:
        if establishments.archive_establishment(establishment_id):
            click.echo(f"✓ Archived establishment {establishment_id}")
        else:
            click.echo(f"Establishment {establishment_id} not found.", err=True)
    except Exception as e:
        _fail("establishments archive", e)


@establishments_group.command('reactivate')
@click.argument('establishment_id')
@log_call
def establishments_reactivate(establishment_id):
    """Reactivate an archived establishment"""
    try:
        if establishments.reactivate_establishment(establishment_id):
            click.echo(f"✓ Reactivated establishment {establishment_id}")
        else:
            click.echo(f"No archived establishment {establishment_id}.", err=True)
    except Exception as e:
        _fail("establishments reactivate", e)


# =============================================================================
# CONTACTS
# =============================================================================

@cli.group('contacts')
def contacts_group():
    """Manage the people working at an establishment"""
    pass


@contacts_group.command('add')
@click.argument('establishment_id')
@click.option('--nom', prompt='Last name')
@click.option('--prenom', prompt='First name')
@click.option('--fonction', default='')
@click.option('--telephone', default='')
@click.option('--email', default='')
@log_call
def contacts_add(establishment_id, nom, prenom, fonction, telephone, email):
    """Add a contact to an establishment"""
    try:
        contact_id = contacts.add_contact(Contact(
            etablissement_id=establishment_id, nom=nom, prenom=prenom,
            fonction=fonction, telephone=telephone, email=email,
        ))
        click.echo(f"✓ Added contact {contact_id}: {prenom} {nom}")
    except Exception as e:
        _fail("contacts add", e)


@contacts_group.command('remove')
@click.argument('contact_id')
@log_call
def contacts_remove(contact_id):
    """Deactivate a contact"""
    try:
        if contacts.deactivate_contact(contact_id):
            click.echo(f"✓ Removed contact {contact_id}")
        else:
            click.echo(f"No active contact {contact_id}.", err=True)
    except Exception as e:
        _fail("contacts remove", e)


# =============================================================================
# ACTIONS
# =============================================================================

@cli.group('actions')
def actions_group():
    """Log and follow up sales actions"""
    pass


@actions_group.command('list')
@click.argument('establishment_id')
@log_call
def actions_list(establishment_id):
    """Timeline of an establishment, most recent first"""
    try:
        entries = actions.list_actions(establishment_id)
    except Exception as e:
        _fail("actions list", e)
        return

    if not entries:
        click.echo("No actions yet.")
        return

    for entry in entries:
        a = entry.action
        click.echo(
            f"[{a.date_action}] {ACTION_TYPE_LABELS.get(a.type, a.type):<20} "
            f"{ACTION_STATUS_LABELS.get(a.statut_action, a.statut_action):<12} "
            f"{entry.user_label:<20} {a.id}"
        )
        if a.commentaire:
            click.echo(f"    {a.commentaire[:100]}")


@actions_group.command('add')
@click.argument('establishment_id')
@click.option('--type', 'action_type', required=True, type=click.Choice(ACTION_TYPES))
@click.option('--date', 'date_action', type=DATE, help='Action date (default: today)')
@click.option('--statut', default='a_venir', type=click.Choice(ACTION_STATUSES))
@click.option('--commentaire')
@click.option('--relance', 'relance_date', type=DATE, help='Follow-up date')
@log_call
def actions_add(establishment_id, action_type, date_action, statut, commentaire, relance_date):
    """Log an action on an establishment"""
    try:
        ctx = _context()
        action_id = actions.create_action(Action(
            etablissement_id=establishment_id,
            user_id=ctx.current_user_id,
            type=action_type,
            date_action=_as_date(date_action) or date.today(),
            statut_action=statut,
            commentaire=commentaire,
            relance_date=_as_date(relance_date),
        ))
        click.echo(f"✓ Logged {ACTION_TYPE_LABELS[action_type]} {action_id}")
    except Exception as e:
        _fail("actions add", e)


@actions_group.command('quick')
@click.argument('establishment_id')
@click.argument('action_type', type=click.Choice(ACTION_TYPES))
@log_call
def actions_quick(establishment_id, action_type):
    """One-click action dated today, status 'a_venir'"""
    try:
        editor = EstablishmentEditor.open(establishment_id, _context())
        if editor.detail is None:
            click.echo(f"Establishment {establishment_id} not found.", err=True)
            return
        action_id = editor.quick_action(action_type)
        if action_id:
            click.echo(f"✓ Logged {ACTION_TYPE_LABELS[action_type]} {action_id} for today")
        else:
            click.echo("Error: the action could not be logged", err=True)
    except Exception as e:
        _fail("actions quick", e)


@actions_group.command('edit')
@click.argument('establishment_id')
@click.argument('action_id')
@click.option('--statut', type=click.Choice(ACTION_STATUSES))
@click.option('--date', 'date_action', type=DATE)
@click.option('--commentaire')
@click.option('--relance', 'relance_date', type=DATE)
@log_call
def actions_edit(establishment_id, action_id, statut, date_action, commentaire, relance_date):
    """Edit an action in place"""
    updates = {}
    if statut:
        updates['statut_action'] = statut
    if date_action:
        updates['date_action'] = _as_date(date_action)
    if commentaire is not None:
        updates['commentaire'] = commentaire
    if relance_date:
        updates['relance_date'] = _as_date(relance_date)

    if not updates:
        click.echo("No updates specified. Use --statut, --date, --commentaire or --relance", err=True)
        return

    try:
        if actions.update_action(action_id, establishment_id, updates):
            click.echo(f"✓ Updated action {action_id}")
        else:
            click.echo(f"Action {action_id} not found for this establishment.", err=True)
    except Exception as e:
        _fail("actions edit", e)


@actions_group.command('delete')
@click.argument('establishment_id')
@click.argument('action_id')
@click.confirmation_option(prompt='Delete this action?')
@log_call
def actions_delete(establishment_id, action_id):
    """Delete an action"""
    try:
        if actions.delete_action(action_id, establishment_id):
            click.echo(f"✓ Deleted action {action_id}")
        else:
            click.echo(f"Action {action_id} not found for this establishment.", err=True)
    except Exception as e:
        _fail("actions delete", e)


# =============================================================================
# COMPETITORS
# =============================================================================

@cli.group('competitors')
def competitors_group():
    """Competitor intelligence history"""
    pass


@competitors_group.command('list')
@click.argument('establishment_id')
@log_call
def competitors_list(establishment_id):
    """Competitor history of an establishment"""
    try:
        entries = competitors.list_history(establishment_id)
    except Exception as e:
        _fail("competitors list", e)
        return

    if not entries:
        click.echo("No competitor information yet.")
        return

    click.echo(f"{'Date':<12} {'Competitor':<25} {'Coef':>6} {'Rate':>8}  Comment")
    click.echo("-" * 80)
    for h in entries:
        coef = '-' if h.coefficient is None else f"{h.coefficient:g}"
        rate = '-' if h.taux_horaire is None else f"{h.taux_horaire:g}"
        click.echo(f"{str(h.date_info):<12} {h.concurrent_nom[:23]:<25} {coef:>6} {rate:>8}  {h.commentaire or ''}")


@competitors_group.command('add')
@click.argument('establishment_id')
@click.option('--nom', 'concurrent_nom', required=True, help='Competitor name')
@click.option('--coefficient')
@click.option('--taux-horaire')
@click.option('--date', 'date_info', type=DATE, help='Date of the information (default: today)')
@click.option('--commentaire')
@log_call
def competitors_add(establishment_id, concurrent_nom, coefficient, taux_horaire, date_info, commentaire):
    """Record competitor information"""
    try:
        editor = EstablishmentEditor.open(establishment_id, _context())
        if editor.detail is None:
            click.echo(f"Establishment {establishment_id} not found.", err=True)
            return
        entry_id = editor.add_competitor(
            concurrent_nom, coefficient=coefficient, taux_horaire=taux_horaire,
            date_info=_as_date(date_info), commentaire=commentaire,
        )
        if entry_id:
            click.echo(f"✓ Recorded {concurrent_nom} ({entry_id})")
        else:
            click.echo("Error: the competitor entry could not be recorded", err=True)
    except Exception as e:
        _fail("competitors add", e)


@competitors_group.command('delete')
@click.argument('entry_id')
@log_call
def competitors_delete(entry_id):
    """Delete a competitor history entry"""
    try:
        if competitors.delete_entry(entry_id):
            click.echo(f"✓ Deleted entry {entry_id}")
        else:
            click.echo(f"Entry {entry_id} not found.", err=True)
    except Exception as e:
        _fail("competitors delete", e)


# =============================================================================
# SUGGESTIONS
# =============================================================================

@cli.group('suggestions')
def suggestions_group():
    """Leads and ideas from the field"""
    pass


@suggestions_group.command('list')
@click.option('--limit', default=100, help='Max results (default: 100)')
@log_call
def suggestions_list(limit):
    """List suggestions, newest first"""
    try:
        ctx = _context()
        items = suggestions.list_suggestions(created_by=ctx.filter_user_id, limit=limit)
    except Exception as e:
        _fail("suggestions list", e)
        return

    if not items:
        click.echo("No suggestions.")
        return

    click.echo(f"\n{suggestions.active_count(items)} to handle, {len(items)} total:\n")
    for s in items:
        click.echo(f"[{s.statut:<9}] {s.priorite:<7} {s.type:<20} {s.titre[:40]:<42} {s.id}")
        if s.description:
            click.echo(f"    {s.description[:100]}")


@suggestions_group.command('add')
@click.option('--titre', prompt='Title')
@click.option('--type', 'suggestion_type', default='suggestion', type=click.Choice(SUGGESTION_TYPES))
@click.option('--priorite', default='normale', type=click.Choice(SUGGESTION_PRIORITIES))
@click.option('--description')
@click.option('--ville')
@log_call
def suggestions_add(titre, suggestion_type, priorite, description, ville):
    """Record a suggestion"""
    try:
        ctx = _context()
        suggestion_id = suggestions.create_suggestion(
            titre, type=suggestion_type, priorite=priorite,
            description=description, ville=ville, created_by=ctx.current_user_id,
        )
        click.echo(f"✓ Created suggestion {suggestion_id}")
    except Exception as e:
        _fail("suggestions add", e)


@suggestions_group.command('done')
@click.argument('suggestion_id')
@log_call
def suggestions_done(suggestion_id):
    """Mark a suggestion as handled"""
    try:
        ctx = _context()
        if suggestions.mark_done(suggestion_id, ctx.current_user_id):
            click.echo(f"✓ Suggestion {suggestion_id} handled")
        else:
            click.echo(f"Suggestion {suggestion_id} not found.", err=True)
    except Exception as e:
        _fail("suggestions done", e)


@suggestions_group.command('delete')
@click.argument('suggestion_id')
@log_call
def suggestions_delete(suggestion_id):
    """Delete a suggestion"""
    try:
        if suggestions.delete_suggestion(suggestion_id):
            click.echo(f"✓ Deleted suggestion {suggestion_id}")
        else:
            click.echo(f"Suggestion {suggestion_id} not found.", err=True)
    except Exception as e:
        _fail("suggestions delete", e)


# =============================================================================
# REFERENCE LISTS
# =============================================================================

@cli.group('params')
def params_group():
    """Groups, sectors, activities and competitors"""
    pass


@params_group.command('list')
@click.option('--categorie', type=click.Choice(PARAMETRAGE_CATEGORIES))
@log_call
def params_list(categorie):
    """List reference entries per category"""
    try:
        grouped = parametrage.grouped_entries()
    except Exception as e:
        _fail("params list", e)
        return

    for name, entries in grouped.items():
        if categorie and name != categorie:
            continue
        click.echo(f"\n{name.upper()} ({len(entries)})")
        for entry in entries:
            click.echo(f"  {entry.valeur:<40} {entry.id}")
    click.echo()


@params_group.command('add')
@click.argument('categorie', type=click.Choice(PARAMETRAGE_CATEGORIES))
@click.argument('valeur')
@log_call
def params_add(categorie, valeur):
    """Add a reference entry"""
    try:
        entry_id = parametrage.add_entry(categorie, valeur)
        click.echo(f"✓ Added {categorie} '{valeur.strip()}' ({entry_id})")
    except Exception as e:
        _fail("params add", e)


@params_group.command('rename')
@click.argument('entry_id')
@click.argument('valeur')
@log_call
def params_rename(entry_id, valeur):
    """Rename a reference entry"""
    try:
        if parametrage.rename_entry(entry_id, valeur):
            click.echo(f"✓ Renamed to '{valeur.strip()}'")
        else:
            click.echo(f"Entry {entry_id} not found.", err=True)
    except Exception as e:
        _fail("params rename", e)


@params_group.command('delete')
@click.argument('entry_id')
@log_call
def params_delete(entry_id):
    """Delete a reference entry (refused while establishments use it)"""
    try:
        if parametrage.delete_entry(entry_id):
            click.echo(f"✓ Deleted entry {entry_id}")
        else:
            click.echo(f"Entry {entry_id} not found.", err=True)
    except Exception as e:
        _fail("params delete", e)


# =============================================================================
# DASHBOARD, AGENDA & REPORTING
# =============================================================================

def _echo_item(item, when=None):
    when = when or item.date_action
    click.echo(
        f"  {when:%d/%m} {ACTION_TYPE_LABELS.get(item.type, item.type):<20} "
        f"{(item.etablissement_nom or '')[:30]:<32}{(item.commentaire or '')[:40]}"
    )


@cli.command('dashboard')
@click.option('--month', is_flag=True, help='Show a calendar month instead of a week')
@click.option('--offset', default=0, help='Periods from the current one (-1 = previous)')
@log_call
def dashboard(month, offset):
    """Portfolio counters, upcoming actions, follow-ups and the three-week activity"""
    try:
        ctx = _context()
        today = date.today()
        mode = reporting.MONTH if month else reporting.WEEK
        start, end = reporting.period_range(today, mode, offset)
        user_id = ctx.filter_user_id

        counts = establishments.status_counts()
        upcoming = actions.agenda(start, end, user_id=user_id, statut='a_venir')
        follow_ups = actions.reminders(user_id=user_id, start=start, end=end)
        latest = suggestions.list_suggestions(created_by=user_id, limit=50)

        monday = reporting.week_start(today)
        activity = reporting.week_buckets(
            actions.agenda(monday - timedelta(weeks=1), monday + timedelta(days=13), user_id=user_id),
            today,
        )
    except Exception as e:
        _fail("dashboard", e)
        return

    click.echo(f"\n{'='*80}")
    click.echo(f"DASHBOARD - {ctx.selected_user_label} - {reporting.period_label(today, mode, offset)}")
    click.echo(f"{'='*80}")
    click.echo(
        f"Prospects: {counts['prospect']}   Clients: {counts['client']}   "
        f"Anciens clients: {counts['ancien_client']}"
    )

    click.echo(f"\nACTIONS À VENIR ({len(upcoming)})")
    for item in upcoming:
        _echo_item(item)

    click.echo(f"\nRELANCES ({len(follow_ups)})")
    for item in follow_ups:
        _echo_item(item, item.relance_date)

    click.echo(f"\nSUGGESTIONS: {suggestions.active_count(latest)} to handle")

    click.echo("\nACTIVITÉ")
    for key, label in ((-1, 'Semaine dernière'), (0, 'Semaine en cours'), (1, 'Semaine prochaine')):
        click.echo(f"  {label}: {len(activity[key])} actions")
    click.echo()


@cli.command('agenda')
@click.option('--week-offset', default=0, help='Weeks from the current one')
@click.option('--type', 'types', multiple=True, type=click.Choice(ACTION_TYPES), help='Only these action types')
@log_call
def agenda(week_offset, types):
    """Actions of one week, day by day"""
    try:
        ctx = _context()
        today = date.today()
        start, end = reporting.period_range(today, reporting.WEEK, week_offset)
        items = actions.agenda(start, end, user_id=ctx.filter_user_id, types=types or None)
    except Exception as e:
        _fail("agenda", e)
        return

    click.echo(f"\n{reporting.period_label(today, reporting.WEEK, week_offset)} ({start:%d/%m} - {end:%d/%m})")
    if not items:
        click.echo("No actions this week.")
        return

    day = start
    while day <= end:
        todays = [i for i in items if i.date_action == day]
        if todays:
            click.echo(f"\n{day:%A %d/%m}")
            for item in todays:
                status = ACTION_STATUS_LABELS.get(item.statut_action, item.statut_action)
                click.echo(
                    f"  {ACTION_TYPE_LABELS.get(item.type, item.type):<20} "
                    f"{(item.etablissement_nom or '')[:30]:<32}{status}"
                )
        day += timedelta(days=1)
    click.echo()


@cli.command('reminders')
@log_call
def reminders():
    """Actions waiting for a follow-up"""
    try:
        ctx = _context()
        items = actions.reminders(user_id=ctx.filter_user_id)
    except Exception as e:
        _fail("reminders", e)
        return

    if not items:
        click.echo("No follow-ups pending. ✓")
        return

    today = date.today()
    click.echo(f"\n{len(items)} follow-ups:\n")
    for item in items:
        overdue = item.relance_date is not None and item.relance_date < today
        when = f"{item.relance_date:%d/%m/%Y}" if item.relance_date else '(no date)'
        click.echo(
            f"{'!' if overdue else ' '} {when:<11} {ACTION_TYPE_LABELS.get(item.type, item.type):<20} "
            f"{(item.etablissement_nom or '')[:30]}"
        )


@cli.command('reporting')
@click.option('--action-type', default='phoning', type=click.Choice(ACTION_TYPES))
@click.option('--offset', default=0, help='Blocks back in time (4 weeks / 12 months each)')
@log_call
def reporting_cmd(action_type, offset):
    """Portfolio counters and action series"""
    try:
        ctx = _context()
        today = date.today()
        user_id = ctx.filter_user_id
        stats = reporting.portfolio_stats(today)
        weekly = reporting.weekly_series(today, offset, user_id=user_id)
        monthly = reporting.monthly_series(today, offset, user_id=user_id)
        sectors = reporting.by_sector()
        cities = reporting.by_city()
    except Exception as e:
        _fail("reporting", e)
        return

    click.echo(f"\n{'='*80}")
    click.echo(f"REPORTING - {ACTION_TYPE_LABELS[action_type]}")
    click.echo(f"{'='*80}")
    click.echo(f"Prospects:          {stats.total_prospects}")
    click.echo(f"Prospects inactifs: {stats.inactive_prospects}")
    click.echo(f"Anciens clients:    {stats.anciens_clients}")
    click.echo(f"Clients déclenchés: {stats.triggered_clients}")

    click.echo("\nPar semaine")
    for point in weekly:
        click.echo(f"  {point.name:<6} {point.count(action_type):>4}")
    click.echo("\nPar mois")
    for point in monthly:
        click.echo(f"  {point.name:<6} {point.count(action_type):>4}")
    click.echo("\nPar secteur")
    for name, value in sectors:
        click.echo(f"  {name[:30]:<32}{value:>4}")
    click.echo("\nPar ville")
    for name, value in cities:
        click.echo(f"  {name[:30]:<32}{value:>4}")
    click.echo()


# =============================================================================
# GEOCODING
# =============================================================================

@cli.group('geo')
def geo_group():
    """City lookup and address geocoding"""
    pass


@geo_group.command('city')
@click.argument('query')
@log_call
def geo_city(query):
    """Suggest cities by name or postal code"""
    results = geo.search_city_suggestions(query)
    if not results:
        click.echo("No matching city.")
        return
    for city in results:
        click.echo(f"{city.code_postal}  {city.nom}")


@geo_group.command('locate')
@click.argument('establishment_id')
@log_call
def geo_locate(establishment_id):
    """Latitude / longitude of an establishment's address"""
    try:
        detail = establishments.get_establishment(establishment_id)
    except Exception as e:
        _fail("geo locate", e)
        return
    if detail is None:
        click.echo(f"Establishment {establishment_id} not found.", err=True)
        return

    est = detail.establishment
    coords = geo.geocode_address(est.adresse, est.code_postal, est.ville)
    if coords is None:
        click.echo(f"Could not locate {est.nom}.")
        return
    click.echo(f"{est.nom}: {coords[0]:.6f}, {coords[1]:.6f}")


# =============================================================================
# MAIN
# =============================================================================

if __name__ == '__main__':
    cli()
