"""
Tests for the member endpoints: listing, the nested tree and admin edits.
"""
from extensions import db
from models.activity_log import ActivityLog
from models.members import FamilyMember


def _new(**overrides):
    body = {'firstName': 'Abdullah', 'gender': 'Male', 'generation': 1, 'branch': 'Fahad'}
    body.update(overrides)
    return body


class TestCreate:
    def test_sequential_ids(self, client, admin, auth_headers):
        headers = auth_headers(admin)
        first = client.post('/api/members', json=_new(), headers=headers)
        second = client.post('/api/members', json=_new(firstName='Saad', fatherId='P001', generation=2),
                             headers=headers)
        assert first.status_code == 201
        assert first.get_json()['member']['id'] == 'P001'
        assert second.get_json()['member']['id'] == 'P002'
        assert second.get_json()['member']['fatherId'] == 'P001'
        assert ActivityLog.query.filter_by(action='CREATE_MEMBER').count() == 2

    def test_unknown_father(self, client, admin, auth_headers):
        resp = client.post('/api/members', json=_new(fatherId='P999'), headers=auth_headers(admin))
        assert resp.status_code == 400
        assert FamilyMember.query.count() == 0

    def test_invalid_gender(self, client, admin, auth_headers):
        resp = client.post('/api/members', json=_new(gender='Other'), headers=auth_headers(admin))
        assert resp.status_code == 400
        assert 'gender' in resp.get_json()['details']['fieldErrors']

    def test_leader_limited_to_branch(self, client, branch_leader, auth_headers):
        headers = auth_headers(branch_leader)
        assert client.post('/api/members', json=_new(branch='Saleh'), headers=headers).status_code == 403
        assert client.post('/api/members', json=_new(), headers=headers).status_code == 201

    def test_member_cannot_add(self, client, member_user, auth_headers):
        assert client.post('/api/members', json=_new(), headers=auth_headers(member_user)).status_code == 403


class TestEdit:
    def test_partial_update(self, client, admin, auth_headers, make_member):
        make_member('P001', city='Jeddah')
        resp = client.put('/api/members/P001', json={'city': 'Riyadh', 'firstName': None},
                          headers=auth_headers(admin))
        assert resp.status_code == 200
        member = resp.get_json()['member']
        assert member['city'] == 'Riyadh'
        assert member['firstName'] == 'Saad'
        assert member['version'] == 2
        assert member['lastModifiedBy'] == str(admin.id)

    def test_clearing_optional_field(self, client, admin, auth_headers, make_member):
        make_member('P001', city='Jeddah')
        client.put('/api/members/P001', json={'city': ''}, headers=auth_headers(admin))
        assert db.session.get(FamilyMember, 'P001').city is None

    def test_self_parent_rejected(self, client, admin, auth_headers, make_member):
        make_member('P001')
        resp = client.put('/api/members/P001', json={'fatherId': 'P001'}, headers=auth_headers(admin))
        assert resp.status_code == 400

    def test_leader_cannot_edit_other_branch(self, client, branch_leader, auth_headers, make_member):
        make_member('P001', branch='Saleh')
        resp = client.put('/api/members/P001', json={'city': 'Riyadh'}, headers=auth_headers(branch_leader))
        assert resp.status_code == 403


class TestRead:
    def test_tree_nests_children(self, client, member_user, auth_headers, make_member):
        make_member('P001', first_name='Shaye')
        make_member('P002', first_name='Fahad', father_id='P001', generation=2)
        make_member('P003', first_name='Sultan', father_id='P002', generation=3)

        resp = client.get('/api/tree', headers=auth_headers(member_user))
        tree = resp.get_json()['tree']
        assert len(tree) == 1
        assert tree[0]['id'] == 'P001'
        assert tree[0]['children'][0]['children'][0]['id'] == 'P003'

    def test_subtree(self, client, member_user, auth_headers, make_member):
        make_member('P001')
        make_member('P002', father_id='P001', generation=2)
        resp = client.get('/api/tree?rootId=P002', headers=auth_headers(member_user))
        assert [n['id'] for n in resp.get_json()['tree']] == ['P002']

    def test_search_and_paginate(self, client, member_user, auth_headers, make_member):
        make_member('P001', first_name='Shaye')
        make_member('P002', first_name='Fahad', father_id='P001', generation=2)
        resp = client.get('/api/members?search=fah', headers=auth_headers(member_user))
        body = resp.get_json()
        assert [m['id'] for m in body['members']] == ['P002']
        assert body['pagination']['total'] == 1

    def test_missing_member(self, client, member_user, auth_headers):
        resp = client.get('/api/members/P404', headers=auth_headers(member_user))
        assert resp.status_code == 404

    def test_login_required(self, client):
        assert client.get('/api/members').status_code == 401
