from __future__ import annotations

import unittest

from fastapi.testclient import TestClient
from sqlalchemy import select

from wms.db import get_db
from wms.main import app
from wms.models import AuditLog, AuthEvent, Branch, UserRole
from wms.services.provider_factory import get_zone_recommender

from tests.support import DatabaseTestCase


class ApiTests(DatabaseTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.variant = self.make_variant('BEANS', cost='10.00')
        self.other_branch = self.add(Branch(organization_id=self.org.id, name='South DC', timezone='UTC'))
        self.db.commit()
        self.db.close()

        def override_get_db():
            db = self.Session()
            try:
                yield db
            finally:
                db.close()

        app.dependency_overrides[get_db] = override_get_db
        self.addCleanup(app.dependency_overrides.clear)
        get_zone_recommender.cache_clear()
        self.addCleanup(get_zone_recommender.cache_clear)
        self.client = TestClient(app)

    def _login(self, username: str, password: str = 'secret') -> dict:
        response = self.client.post('/auth/login', json={'username': username, 'password': password})
        self.assertEqual(response.status_code, 200, response.text)
        return {'Authorization': f"Bearer {response.json()['token']}"}

    def _create_order(self, headers: dict, branch_id: int | None = None):
        return self.client.post(
            '/purchase-orders/create',
            headers=headers,
            json={
                'branch_id': branch_id or self.branch.id,
                'supplier_id': self.supplier.id,
                'items': [{'sku_id': self.variant.id, 'quantity': 100}],
            },
        )

    def test_bad_login_returns_error_envelope(self) -> None:
        response = self.client.post('/auth/login', json={'username': 'operator', 'password': 'nope'})

        self.assertEqual(response.status_code, 401)
        self.assertEqual(
            response.json(),
            {'code': 'invalid_credentials', 'message': 'Invalid username or password', 'errors': [], 'status': 401},
        )
        with self.Session() as db:
            event = db.execute(select(AuthEvent)).scalar_one()
        self.assertFalse(event.success)
        self.assertEqual(event.failure_reason, 'BAD_PASSWORD')

    def test_requests_without_token_are_rejected(self) -> None:
        response = self.client.get('/auth/me')
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()['code'], 'not_authenticated')
        self.assertEqual(response.headers['www-authenticate'], 'Bearer')

    def test_login_and_me(self) -> None:
        headers = self._login('operator')
        response = self.client.get('/auth/me', headers=headers)

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['role'], UserRole.OPERATOR.value)
        self.assertEqual(response.headers['x-content-type-options'], 'nosniff')
        self.assertIn('x-request-id', response.headers)

        self.client.post('/auth/logout', headers=headers)
        self.assertEqual(self.client.get('/auth/me', headers=headers).status_code, 401)

    def test_receiving_flow_over_http(self) -> None:
        headers = self._login('operator')

        created = self._create_order(headers)
        self.assertEqual(created.status_code, 200, created.text)
        order_id = created.json()['order_id']

        session = self.client.post('/receive-sessions/create', headers=headers, json={'purchase_order_id': order_id})
        self.assertEqual(session.status_code, 200, session.text)
        session_id = session.json()['receive_session_id']

        progress = self.client.get(f'/receive-sessions/{session_id}/progress', headers=headers).json()
        detail_id = progress['items'][0]['detail_id']

        received = self.client.post(
            '/receive-sessions/process-item',
            headers=headers,
            json={'receive_session_detail_id': detail_id, 'quantity_to_add': 60},
        )
        self.assertEqual(received.status_code, 200, received.text)
        self.assertEqual(received.json()['status'], 'IN_PROGRESS')

        again = self.client.post('/receive-sessions/create', headers=headers, json={'purchase_order_id': order_id})
        self.assertEqual(again.status_code, 409)
        self.assertEqual(again.json()['code'], 'invalid_state')

        with self.Session() as db:
            actions = db.execute(select(AuditLog.action).order_by(AuditLog.id)).scalars().all()
        self.assertIn('RECEIVE_SESSION_CREATED', actions)
        self.assertIn('RECEIVE_ITEM_PROCESSED', actions)

        self.assertEqual(self.client.get(f'/receive-sessions/{session_id}/history', headers=headers).status_code, 403)
        history = self.client.get(f'/receive-sessions/{session_id}/history', headers=self._login('manager')).json()
        self.assertEqual([entry['action'] for entry in history], ['RECEIVE_SESSION_CREATED', 'RECEIVE_ITEM_PROCESSED'])
        self.assertEqual(history[1]['metadata']['quantity_added'], 60)

    def test_manager_only_actions(self) -> None:
        headers = self._login('operator')
        order_id = self._create_order(headers).json()['order_id']

        response = self.client.post('/purchase-orders/cancel', headers=headers, json={'purchase_order_id': order_id})
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()['code'], 'permission_denied')

        manager = self._login('manager')
        response = self.client.post('/purchase-orders/cancel', headers=manager, json={'purchase_order_id': order_id})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['status'], 'CANCELLED')

    def test_operator_is_scoped_to_their_branch(self) -> None:
        headers = self._login('operator')
        response = self._create_order(headers, branch_id=self.other_branch.id)
        self.assertEqual(response.status_code, 403)

    def test_validation_and_not_found_envelopes(self) -> None:
        headers = self._login('operator')

        invalid = self.client.post('/receive-sessions/process-item', headers=headers, json={'quantity_to_add': 5})
        self.assertEqual(invalid.status_code, 400)
        self.assertEqual(invalid.json()['code'], 'validation_error')
        self.assertEqual(invalid.json()['errors'][0]['field'], 'receive_session_detail_id')

        rejected = self.client.post(
            '/receive-sessions/process-item',
            headers=headers,
            json={'receive_session_detail_id': 1, 'quantity_to_add': 0},
        )
        self.assertEqual(rejected.status_code, 404)

        missing = self.client.get('/purchase-orders/9999', headers=headers)
        self.assertEqual(missing.status_code, 404)
        self.assertEqual(missing.json()['code'], 'not_found')


if __name__ == '__main__':
    unittest.main()
