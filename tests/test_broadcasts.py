"""
Tests for broadcasts: audience resolution, sending (with the email provider
stubbed out) and RSVP tracking.
"""
import pytest

from extensions import db
from models.broadcasts import Broadcast, BroadcastRecipient
from services.broadcast_service import BroadcastService, render_broadcast_email
from services.email_service import EmailResult, EmailService
from utils.errors import ConflictError, NotFoundError, ValidationError


@pytest.fixture
def family(app, make_member):
    make_member('P001', first_name='Fahad', email='fahad@example.com')
    make_member('P002', first_name='Saleh', branch='Saleh', email='saleh@example.com')
    make_member('P003', first_name='Hamad', email=None)
    make_member('P004', first_name='Late', email='late@example.com', status='Deceased')


@pytest.fixture
def sent_mail(monkeypatch):
    """Capture outgoing mail; addresses in ``failing`` are rejected."""
    outbox = {'sent': [], 'failing': set()}

    def fake_send(to, subject, html=None, text=None):
        if to in outbox['failing']:
            return EmailResult(False, None, 'mailbox unavailable')
        outbox['sent'].append({'to': to, 'subject': subject, 'html': html})
        return EmailResult(True, f'msg-{len(outbox["sent"])}', None)

    monkeypatch.setattr(EmailService, 'send_email', staticmethod(fake_send))
    return outbox


def _create(user, **values):
    base = {'title_ar': 'اجتماع العائلة', 'content_ar': 'نلتقي يوم الجمعة', 'type': 'MEETING',
            'target_audience': 'ALL'}
    base.update(values)
    return BroadcastService.create_broadcast(base, None, user)


# ---------------------------------------------------------------------------
# Audience
# ---------------------------------------------------------------------------

class TestRecipients:
    def test_all_living_members_plus_active_users(self, app, admin, family):
        broadcast = _create(admin)
        emails = {r['email'] for r in BroadcastService.get_recipients(broadcast)}
        assert emails == {'fahad@example.com', 'saleh@example.com', 'admin@example.com'}

    def test_branch_audience(self, app, admin, family):
        broadcast = _create(admin, target_audience='BRANCH', target_branch='Saleh')
        emails = [r['email'] for r in BroadcastService.get_recipients(broadcast)]
        assert 'saleh@example.com' in emails
        assert 'fahad@example.com' not in emails

    def test_custom_audience(self, app, admin, family):
        broadcast = BroadcastService.create_broadcast(
            {'title_ar': 'خاص', 'content_ar': 'نص', 'type': 'UPDATE', 'target_audience': 'CUSTOM'},
            ['P001'], admin,
        )
        member_emails = [r['email'] for r in BroadcastService.get_recipients(broadcast) if r['memberId'] == 'P001']
        assert member_emails == ['fahad@example.com']

    def test_branch_audience_requires_branch(self, app, admin):
        with pytest.raises(ValidationError):
            _create(admin, target_audience='BRANCH')


# ---------------------------------------------------------------------------
# Sending
# ---------------------------------------------------------------------------

class TestSend:
    def test_partial_failure_still_marks_sent(self, app, admin, family, sent_mail):
        sent_mail['failing'].add('saleh@example.com')
        broadcast = _create(admin)

        result = BroadcastService.send_broadcast(broadcast.id, admin)

        assert result['success'] is False
        assert result['totalRecipients'] == 3
        assert result['sentCount'] == 2
        assert result['failedCount'] == 1
        assert result['errors'] == ['saleh@example.com: mailbox unavailable']
        assert broadcast.status == 'SENT'
        failed = BroadcastRecipient.query.filter_by(broadcast_id=broadcast.id, status='FAILED').one()
        assert failed.email == 'saleh@example.com'

    def test_cannot_send_twice(self, app, admin, family, sent_mail):
        broadcast = _create(admin)
        BroadcastService.send_broadcast(broadcast.id, admin)
        with pytest.raises(ConflictError):
            BroadcastService.send_broadcast(broadcast.id, admin)

    def test_cancelled_broadcast_not_sent(self, app, admin, sent_mail):
        broadcast = _create(admin)
        BroadcastService.cancel_broadcast(broadcast.id, admin)
        with pytest.raises(ConflictError):
            BroadcastService.send_broadcast(broadcast.id, admin)
        assert sent_mail['sent'] == []

    def test_sent_broadcast_is_frozen(self, app, admin, family, sent_mail):
        broadcast = _create(admin)
        BroadcastService.send_broadcast(broadcast.id, admin)
        with pytest.raises(ConflictError):
            BroadcastService.update_broadcast(broadcast.id, {'title_en': 'x'}, None, admin)
        with pytest.raises(ConflictError):
            BroadcastService.delete_broadcast(broadcast.id, admin)

    def test_unconfigured_provider_fails_softly(self, app, admin, family):
        broadcast = _create(admin)
        result = BroadcastService.send_broadcast(broadcast.id, admin)
        assert result['sentCount'] == 0
        assert result['failedCount'] == result['totalRecipients']

    def test_email_has_rsvp_links(self, app, admin):
        broadcast = _create(admin, rsvp_required=True)
        subject, html, text = render_broadcast_email(broadcast, 'فهد', 'fahad@example.com')
        assert subject.endswith('اجتماع العائلة')
        assert f'/api/broadcasts/{broadcast.id}/rsvp?email=fahad@example.com&response=YES' in html
        assert 'فهد' in text


# ---------------------------------------------------------------------------
# RSVP
# ---------------------------------------------------------------------------

class TestRsvp:
    @pytest.fixture
    def sent(self, app, admin, family, sent_mail):
        broadcast = _create(admin, rsvp_required=True)
        BroadcastService.send_broadcast(broadcast.id, admin)
        return broadcast

    def test_rsvp_counts(self, app, sent):
        BroadcastService.record_rsvp(sent.id, 'fahad@example.com', 'YES')
        BroadcastService.record_rsvp(sent.id, 'saleh@example.com', 'MAYBE', 'might be late')
        broadcast = db.session.get(Broadcast, sent.id)
        assert broadcast.rsvp_yes_count == 1
        assert broadcast.rsvp_maybe_count == 1
        assert broadcast.rsvp_no_count == 0

    def test_changing_answer_recounts(self, app, sent):
        BroadcastService.record_rsvp(sent.id, 'fahad@example.com', 'YES')
        BroadcastService.record_rsvp(sent.id, 'fahad@example.com', 'NO')
        broadcast = db.session.get(Broadcast, sent.id)
        assert broadcast.rsvp_yes_count == 0
        assert broadcast.rsvp_no_count == 1

    def test_unknown_recipient(self, app, sent):
        with pytest.raises(NotFoundError):
            BroadcastService.record_rsvp(sent.id, 'stranger@example.com', 'YES')

    def test_summary_groups_answers(self, app, sent):
        BroadcastService.record_rsvp(sent.id, 'fahad@example.com', 'YES')
        recipients, summary = BroadcastService.rsvp_summary(sent)
        assert len(recipients) == 3
        assert [r['email'] for r in summary['yes']] == ['fahad@example.com']
        assert len(summary['noResponse']) == 2

    def test_rsvp_not_required(self, app, admin, family, sent_mail):
        broadcast = _create(admin)
        BroadcastService.send_broadcast(broadcast.id, admin)
        with pytest.raises(ValidationError):
            BroadcastService.record_rsvp(broadcast.id, 'fahad@example.com', 'YES')

    def test_rsvp_link_from_email(self, client, sent):
        resp = client.get(f'/api/broadcasts/{sent.id}/rsvp?email=fahad@example.com&response=YES')
        assert resp.status_code == 200
        assert resp.get_json()['rsvp']['rsvpResponse'] == 'YES'


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

class TestBroadcastRoutes:
    def test_create_with_defaults(self, client, admin, auth_headers):
        resp = client.post('/api/broadcasts', json={'titleAr': 'إعلان', 'contentAr': 'نص'},
                           headers=auth_headers(admin))
        assert resp.status_code == 201
        broadcast = resp.get_json()['broadcast']
        assert broadcast['type'] == 'ANNOUNCEMENT'
        assert broadcast['targetAudience'] == 'ALL'
        assert broadcast['status'] == 'DRAFT'

    def test_scheduled_broadcast(self, client, admin, auth_headers):
        resp = client.post('/api/broadcasts', headers=auth_headers(admin), json={
            'titleAr': 'تذكير', 'contentAr': 'نص', 'type': 'REMINDER', 'scheduledAt': '2030-01-01T10:00',
        })
        assert resp.get_json()['broadcast']['status'] == 'SCHEDULED'

    def test_edit_keeps_unsent_fields(self, client, admin, auth_headers):
        headers = auth_headers(admin)
        created = client.post('/api/broadcasts', json={'titleAr': 'إعلان', 'contentAr': 'نص', 'type': 'UPDATE'},
                              headers=headers).get_json()['broadcast']
        resp = client.put(f'/api/broadcasts/{created["id"]}', json={'titleEn': 'Notice', 'type': None},
                          headers=headers)
        assert resp.status_code == 200
        broadcast = resp.get_json()['broadcast']
        assert broadcast['titleEn'] == 'Notice'
        assert broadcast['type'] == 'UPDATE'

    def test_bad_target_ids(self, client, admin, auth_headers):
        resp = client.post('/api/broadcasts', headers=auth_headers(admin), json={
            'titleAr': 'خاص', 'contentAr': 'نص', 'targetAudience': 'CUSTOM', 'targetMemberIds': [1, 2],
        })
        assert resp.status_code == 400

    def test_member_cannot_create(self, client, member_user, auth_headers):
        resp = client.post('/api/broadcasts', json={'titleAr': 'إعلان', 'contentAr': 'نص'},
                           headers=auth_headers(member_user))
        assert resp.status_code == 403

    def test_send_and_recipients(self, client, admin, auth_headers, family, sent_mail):
        headers = auth_headers(admin)
        created = client.post('/api/broadcasts', json={'titleAr': 'إعلان', 'contentAr': 'نص'},
                              headers=headers).get_json()['broadcast']
        resp = client.post(f'/api/broadcasts/{created["id"]}/send', headers=headers)
        assert resp.status_code == 200
        assert resp.get_json()['sentCount'] == 3

        recipients = client.get(f'/api/broadcasts/{created["id"]}/recipients', headers=headers).get_json()
        assert recipients['counts']['total'] == 3
        assert recipients['counts']['noResponse'] == 3
