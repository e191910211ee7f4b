"""
Student360 - Main Application

This module is the entry point of the Student360 web application. It wires
the configuration, the document store, the identity provider and the
application services together, and exposes the web pages, the scanner
endpoints and the management commands.

Pages are not separate routes: every signed-in user has an AppState whose
current page is rendered at '/', and navigation happens through POST /go/<page>.

Features:
- Email/password sign-in with role-based sessions
- Dashboard with role cards
- Student administration: add, CSV import, QR download and print
- Browser QR scanner with duplicate and stale-result guards
- Student page with behavioral notes
- CLI: init-db, create-user, seed-demo, scan (local camera)
"""

from flask import (Flask, Blueprint, render_template, request, jsonify, redirect, url_for,
                   flash, session, current_app, g, abort, Response)
from flask.cli import FlaskGroup
from functools import wraps
import asyncio
import logging
import os

import click

from config import init_config
import student360
from student360.modules import messages
from student360.modules.document_store import DocumentStore
from student360.modules.identity_provider import AuthError, IdentityProvider
from student360.modules.session_resolver import RoleStore, SessionResolver
from student360.modules.student_directory import StudentDirectory
from student360.modules.notes_ledger import NotesLedger
from student360.modules.qr_generator import QRGenerator
from student360.modules.records import NOTE_CATEGORIES, NOTE_LOCATIONS, DEFAULT_GRADE, DEFAULT_SECTION
from student360.modules.scan_pipeline import ScanPipeline, ScanStateError, humanize_camera_error
from student360.modules.navigation import (AppState, Navigator, StateContainer,
                                           DASHBOARD, SCANNER, STUDENT, ADMIN_STUDENTS)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]'
)
logger = logging.getLogger(__name__)

PACKAGE_DIR = os.path.dirname(os.path.abspath(student360.__file__))

DEMO_ACCOUNTS = [
    ('admin@demo.sa', 'admin'),
    ('teacher@demo.sa', 'teacher'),
    ('counselor@demo.sa', 'counselor'),
    ('parent@demo.sa', 'parent'),
]
DEMO_PASSWORD = '123456'

bp = Blueprint('main', __name__)


def create_app(config_name=None, overrides=None):
    """
    Build the Flask application and its services.

    Args:
        config_name (str): Key of the config dict ('development', 'testing', 'production')
        overrides (dict): Config values applied after the config class

    Returns:
        Flask: Configured application
    """
    app = Flask(__name__,
                template_folder=os.path.join(PACKAGE_DIR, 'templates'),
                static_folder=os.path.join(PACKAGE_DIR, 'static'))
    init_config(app, config_name)
    if overrides:
        app.config.update(overrides)

    logging.getLogger().setLevel(app.config.get('LOG_LEVEL', 'INFO'))

    store = DocumentStore(app.config['DATABASE_PATH'])
    identity_provider = IdentityProvider(
        store,
        max_login_attempts=app.config['MAX_LOGIN_ATTEMPTS'],
        lockout_duration=app.config['LOGIN_LOCKOUT_DURATION'],
        password_min_length=app.config['PASSWORD_MIN_LENGTH'],
        allow_self_signup=app.config['ALLOW_SELF_SIGNUP']
    )
    role_store = RoleStore(store)
    session_resolver = SessionResolver(store, role_store, app.config['SCHOOL_ID'], app.config['SCHOOL_NAME'])
    session_resolver.attach(identity_provider)

    student_directory = StudentDirectory(
        store,
        app.config['SCHOOL_ID'],
        list_limit=app.config['STUDENT_LIST_LIMIT'],
        import_limit=app.config['CSV_IMPORT_MAX_ROWS']
    )
    states = StateContainer()

    def _discard_state_on_sign_out(change):
        if change.identity is None:
            states.discard(change.uid)

    identity_provider.on_auth_state_changed(_discard_state_on_sign_out)

    app.extensions['student360'] = {
        'store': store,
        'identity_provider': identity_provider,
        'role_store': role_store,
        'session_resolver': session_resolver,
        'student_directory': student_directory,
        'notes_ledger': NotesLedger(store, app.config['SCHOOL_ID'], list_limit=app.config['NOTES_LIST_LIMIT']),
        'qr_generator': QRGenerator(app.config['QR_BOX_SIZE'], app.config['QR_BORDER'], app.config['BRAND_NAME']),
        'navigator': Navigator(student_directory),
        'states': states,
    }

    app.register_blueprint(bp)
    register_commands(app)

    logger.info(f"Student360 initialized for school {app.config['SCHOOL_ID']}")
    return app


def services():
    return current_app.extensions['student360']


def login_required(f):
    """Decorator to require a signed-in identity; loads g.session and g.state"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        identity = services()['identity_provider'].get_identity(session.get('uid'))
        if identity is None:
            session.clear()
            if request.is_json:
                return jsonify({'success': False, 'message': 'Not signed in'}), 401
            return redirect(url_for('main.login'))

        g.identity = identity
        g.session = services()['session_resolver'].get_session(identity)
        g.state = services()['states'].get(identity.uid)
        return f(*args, **kwargs)
    return decorated_function


def admin_required(f):
    """Decorator to require an admin session for protected routes"""
    @wraps(f)
    @login_required
    def decorated_function(*args, **kwargs):
        if not g.session.is_admin:
            flash(messages.ADMIN_ONLY_CREATE, 'error')
            return redirect(url_for('main.index'))
        return f(*args, **kwargs)
    return decorated_function


def _flash_result(result):
    if result.get('success'):
        flash(result.get('message', ''), 'success')
    else:
        flash(result.get('error', ''), 'error')


@bp.route('/login', methods=['GET', 'POST'])
def login():
    """Sign-in page"""
    error = ''
    email = ''

    if request.method == 'POST':
        email = request.form.get('email', '').strip()
        password = request.form.get('password', '')

        if not email:
            error = messages.LOGIN_EMAIL_REQUIRED
        elif not password:
            error = messages.LOGIN_PASSWORD_REQUIRED
        else:
            try:
                identity = services()['identity_provider'].sign_in(email, password, request.remote_addr)
                session.clear()
                session['uid'] = identity.uid
                return redirect(url_for('main.index'))

            except AuthError as e:
                logger.warning(f"Sign-in failed for {email}: {e.code}")
                error = messages.auth_error_message(e.code)
            except Exception as e:
                logger.error(f"Sign-in error for {email}: {str(e)}")
                error = messages.AUTH_ERROR_UNKNOWN

    return render_template('login.html', error=error, email=email, demo_accounts=DEMO_ACCOUNTS,
                           demo_password=DEMO_PASSWORD)


@bp.route('/logout', methods=['POST'])
def logout():
    """Sign out and return to the login page"""
    uid = session.get('uid')
    try:
        if uid:
            services()['identity_provider'].sign_out(uid)
    except Exception as e:
        logger.error(f"Sign-out error for {uid}: {str(e)}")
    finally:
        session.clear()
    return redirect(url_for('main.login'))


@bp.route('/')
@login_required
def index():
    """Render the page the user's application state points at"""
    user_session = g.session
    state = g.state

    if user_session.is_unknown:
        return render_template('message.html', title=current_app.config['BRAND_NAME'],
                               message=messages.UNKNOWN_ROLE_MESSAGE, session_info=user_session)

    common = {
        'session_info': user_session,
        'role_label': messages.ROLE_LABELS.get(user_session.role, '—'),
        'role_labels': messages.ROLE_LABELS,
    }

    if state.page == ADMIN_STUDENTS:
        if not user_session.is_admin:
            services()['navigator'].go(state, DASHBOARD)
            return redirect(url_for('main.index'))

        listing = services()['student_directory'].list_latest()
        if not listing['success']:
            flash(listing['error'], 'error')
        return render_template('admin_students.html', students=listing['students'],
                               default_grade=DEFAULT_GRADE, default_section=DEFAULT_SECTION, **common)

    if state.page == SCANNER:
        # a rendered scanner page owns no camera yet
        state.scanner.reset()
        return render_template('scanner.html', token=state.token.current, scanner=state.scanner.snapshot(),
                               settle_delay_ms=current_app.config['SCAN_SETTLE_DELAY_MS'], **common)

    if state.page == STUDENT:
        notes = []
        if state.student is not None:
            notes = services()['notes_ledger'].list_recent(state.student.student_id)
        return render_template('student.html', student=state.student, error=state.student_error, notes=notes,
                               can_write_notes=user_session.can_write_notes,
                               locations=NOTE_LOCATIONS, categories=NOTE_CATEGORIES, **common)

    return render_template('dashboard.html', cards=messages.ROLE_CARDS.get(user_session.role, []), **common)


@bp.route('/go/<page>', methods=['POST'])
@login_required
def go(page):
    """In-memory navigation"""
    try:
        services()['navigator'].go(g.state, page)
    except ValueError:
        abort(404)
    return redirect(url_for('main.index'))


@bp.route('/students', methods=['POST'])
@login_required
def create_student():
    """Add a single student (admin)"""
    result = services()['student_directory'].create_student(
        g.session,
        request.form.get('student_id', ''),
        request.form.get('name', ''),
        request.form.get('grade', DEFAULT_GRADE),
        request.form.get('section', DEFAULT_SECTION)
    )
    _flash_result(result)
    return redirect(url_for('main.index'))


@bp.route('/students/import', methods=['POST'])
@login_required
def import_students():
    """Import students from an uploaded CSV file (admin)"""
    upload = request.files.get('file')
    if upload is None or not upload.filename:
        flash(messages.CSV_NO_VALID_ROWS, 'error')
        return redirect(url_for('main.index'))

    extension = upload.filename.rsplit('.', 1)[-1].lower() if '.' in upload.filename else ''
    if extension not in current_app.config['ALLOWED_IMPORT_EXTENSIONS']:
        flash(messages.CSV_NO_VALID_ROWS, 'error')
        return redirect(url_for('main.index'))

    try:
        content = upload.read().decode('utf-8-sig')
    except UnicodeDecodeError as e:
        logger.warning(f"CSV upload is not UTF-8: {str(e)}")
        flash(messages.CSV_IMPORT_FAILED, 'error')
        return redirect(url_for('main.index'))

    result = services()['student_directory'].import_students_csv(g.session, content)
    _flash_result(result)
    return redirect(url_for('main.index'))


@bp.route('/students/<student_id>/qr.png')
@admin_required
def student_qr(student_id):
    """QR image for a student; ?download=1 serves it as an attachment"""
    qr_result = services()['qr_generator'].generate_student_qr_code(student_id)
    if not qr_result['success']:
        flash(messages.QR_GENERATION_FAILED, 'error')
        return redirect(url_for('main.index'))

    response = Response(qr_result['image_bytes'], mimetype='image/png')
    if request.args.get('download'):
        response.headers['Content-Disposition'] = f"attachment; filename={qr_result['filename']}"
    return response


@bp.route('/students/<student_id>/print')
@admin_required
def print_student_qr(student_id):
    """Printable page with the student's name, ID and QR code"""
    lookup = services()['student_directory'].get_student(student_id)
    if not lookup['success']:
        flash(lookup['error'], 'error')
        return redirect(url_for('main.index'))

    student = lookup['student']
    qr_result = services()['qr_generator'].generate_student_qr_code(student.student_id)
    if not qr_result['success']:
        flash(messages.QR_GENERATION_FAILED, 'error')
        return redirect(url_for('main.index'))

    html = services()['qr_generator'].render_print_view(student.name, student.student_id, qr_result['data_url'])
    return Response(html, mimetype='text/html')


@bp.route('/lookup', methods=['POST'])
@login_required
def lookup_student():
    """Open a student by typed ID from the scanner page"""
    state = g.state
    services()['navigator'].open_student_by_id(state, request.form.get('student_id', ''), state.token.current)
    return redirect(url_for('main.index'))


@bp.route('/notes', methods=['POST'])
@login_required
def add_note():
    """Append a note to the student currently shown"""
    state = g.state
    if state.page != STUDENT:
        flash(messages.NOTE_STUDENT_REQUIRED, 'error')
        return redirect(url_for('main.index'))

    result = services()['notes_ledger'].add_note(
        g.session,
        state.student,
        request.form.get('type', 'positive'),
        request.form.get('location', ''),
        request.form.get('category', ''),
        request.form.get('comment', '')
    )
    _flash_result(result)
    return redirect(url_for('main.index'))


@bp.route('/scanner/start', methods=['POST'])
@login_required
def scanner_start():
    """Browser requested camera start"""
    try:
        camera_session = g.state.scanner.request_start()
    except ScanStateError as e:
        return jsonify({'success': False, 'message': str(e), **g.state.scanner.snapshot()}), 409

    return jsonify({'success': True, 'token': g.state.token.current, **g.state.scanner.snapshot(),
                    'camera_session': camera_session})


@bp.route('/scanner/armed', methods=['POST'])
@login_required
def scanner_armed():
    """Browser attached the camera stream and armed the decoder"""
    data = request.get_json(silent=True) or {}
    try:
        g.state.scanner.armed(data.get('camera_session'))
    except ScanStateError as e:
        return jsonify({'success': False, 'message': str(e), **g.state.scanner.snapshot()}), 409
    return jsonify({'success': True, **g.state.scanner.snapshot()})


@bp.route('/scanner/error', methods=['POST'])
@login_required
def scanner_error():
    """Browser reported a camera failure"""
    data = request.get_json(silent=True) or {}
    humanized = humanize_camera_error({'name': data.get('name'), 'message': data.get('message')})

    if data.get('camera_session') == g.state.scanner.camera_session:
        try:
            g.state.scanner.fail(humanized['reason'])
        except ScanStateError as e:
            logger.info(f"Ignored camera error in state {g.state.scanner.state}: {str(e)}")

    return jsonify({'success': True, **humanized, **g.state.scanner.snapshot()})


@bp.route('/scanner/decode', methods=['POST'])
@login_required
def scanner_decode():
    """Browser decoded a QR code; only the first decode of a camera session opens a student"""
    state = g.state
    data = request.get_json(silent=True) or {}
    token = data.get('token')

    if not state.token.is_current(token):
        logger.info(f"Discarded stale decode (token {token}, current {state.token.current})")
        return jsonify({'success': True, 'accepted': False, 'reason': 'stale'})

    if not state.scanner.accept_decode(data.get('camera_session')):
        return jsonify({'success': True, 'accepted': False, 'reason': 'duplicate'})

    opened = services()['navigator'].open_student_by_id(state, data.get('text', ''), token)
    if not opened:
        return jsonify({'success': True, 'accepted': False, 'reason': 'stale'})

    return jsonify({'success': True, 'accepted': True, 'redirect': url_for('main.index')})


@bp.route('/scanner/reset', methods=['POST'])
@login_required
def scanner_reset():
    """Manual stop/reset"""
    g.state.scanner.reset()
    return jsonify({'success': True, **g.state.scanner.snapshot()})


def register_commands(app):
    """Register management commands on the Flask CLI"""

    @app.cli.command('init-db')
    def init_db_command():
        """Create the database tables."""
        svc = app.extensions['student360']
        svc['store'].initialize_database()
        svc['identity_provider'].initialize_table()
        click.echo(f"Database ready at {app.config['DATABASE_PATH']}")

    @app.cli.command('create-user')
    @click.argument('email')
    @click.argument('password')
    @click.option('--role', type=click.Choice(['admin', 'teacher', 'counselor', 'parent']), required=True)
    def create_user_command(email, password, role):
        """Create an identity (or reuse an existing one) and assign its role."""
        svc = app.extensions['student360']
        identity = svc['identity_provider'].find_by_email(email)
        if identity is None:
            try:
                identity = svc['identity_provider'].create_user(email, password, privileged=True)
            except AuthError as e:
                raise click.ClickException(f"{e.code}: {e}")
        svc['role_store'].assign_role(identity.uid, role, identity.email)
        click.echo(f"{identity.email} ({identity.uid}) -> {role}")

    @app.cli.command('seed-demo')
    def seed_demo_command():
        """Create the demo accounts (password 123456)."""
        svc = app.extensions['student360']
        for email, role in DEMO_ACCOUNTS:
            identity = svc['identity_provider'].find_by_email(email)
            if identity is None:
                identity = svc['identity_provider'].create_user(email, DEMO_PASSWORD, privileged=True)
            svc['role_store'].assign_role(identity.uid, role, email)
            click.echo(f"{email} -> {role}")

    @app.cli.command('scan')
    @click.option('--camera', 'camera_index', type=int, default=None, help='Camera index')
    def scan_command(camera_index):
        """Scan one student QR code with a local camera and show the record."""
        from student360.modules.camera_decoder import CameraDecoder

        svc = app.extensions['student360']
        state = AppState(page=SCANNER)
        if camera_index is None:
            camera_index = app.config['CAMERA_INDEX']

        async def run():
            done = asyncio.Event()

            def on_scan(text, token):
                svc['navigator'].open_student_by_id(state, text, token)
                done.set()

            pipeline = ScanPipeline(
                CameraDecoder(camera_index),
                on_scan,
                state.token.current,
                settle_delay=app.config['SCAN_SETTLE_DELAY_MS'] / 1000.0,
                scanner_state=state.scanner,
                on_error=lambda reason: done.set()
            )
            if not await pipeline.start():
                return

            click.echo('Scanning... press Ctrl+C to stop')
            try:
                await done.wait()
            finally:
                pipeline.stop()

        try:
            asyncio.run(run())
        except KeyboardInterrupt:
            click.echo('Stopped')
            return

        if state.scanner.error:
            raise click.ClickException(state.scanner.error)
        if state.student is None:
            raise click.ClickException(state.student_error or 'No student')

        student = state.student
        click.echo(f"{student.student_id}  {student.name}  {student.grade} / {student.section}")
        for note in svc['notes_ledger'].list_recent(student.student_id, limit=5):
            click.echo(f"  [{note.note_type}] {note.category} @ {note.location}: {note.comment}")


cli = FlaskGroup(create_app=create_app)


if __name__ == '__main__':
    application = create_app()
    application.run(debug=application.config.get('DEBUG', False), host='0.0.0.0', port=5000)
