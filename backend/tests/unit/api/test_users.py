"""
Tests for user directory and management endpoints
"""
import uuid

import pytest
from httpx import AsyncClient
from faker import Faker

from agileflow.core.exceptions import ValidationError
from agileflow.services.change_feed import ChangeFeed
from agileflow.services.user_service import UserService

fake = Faker()


def new_user_payload(role: str) -> dict:
    return {
        'email': fake.unique.email(),
        'password': 'secret123',
        'name': fake.name(),
        'role': role,
    }


class TestDirectory:
    """Tests for listing and reading profiles"""

    async def test_student_sees_everyone(self, client: AsyncClient, hod, professor, student):
        """Test that the directory is visible to every role"""
        response = await client.get('/api/users', headers=student.headers)

        assert response.status_code == 200
        ids = {u['id'] for u in response.json()['users']}
        assert {hod.id, professor.id, student.id} <= ids

    async def test_list_by_role(self, client: AsyncClient, hod, professor, student):
        """Test filtering the directory by role"""
        response = await client.get('/api/users/role/Professor', headers=hod.headers)

        assert response.status_code == 200
        users = response.json()['users']
        assert [u['id'] for u in users] == [professor.id]

    async def test_list_by_invalid_role(self, client: AsyncClient, hod):
        """Test that an unknown role is a 400"""
        response = await client.get('/api/users/role/Dean', headers=hod.headers)

        assert response.status_code == 400
        assert response.json() == {'error': 'Invalid role'}

    async def test_get_unknown_user(self, client: AsyncClient, hod):
        """Test that a missing profile is a 404"""
        response = await client.get(f'/api/users/{uuid.uuid4()}', headers=hod.headers)

        assert response.status_code == 404
        assert response.json() == {'error': 'User not found'}

    async def test_requires_auth(self, client: AsyncClient):
        """Test that the directory needs a token"""
        response = await client.get('/api/users')
        assert response.status_code == 401


class TestCreateUser:
    """Tests for admin user creation"""

    async def test_hod_creates_professor(self, client: AsyncClient, hod):
        """Test that HOD may create a Professor and is recorded as creator"""
        response = await client.post('/api/users', json=new_user_payload('Professor'), headers=hod.headers)

        assert response.status_code == 201
        data = response.json()
        assert data['message'] == 'User created successfully'
        assert data['user']['role'] == 'Professor'
        assert data['user']['created_by'] == hod.id
        assert data['user']['creator']['id'] == hod.id

    async def test_professor_creates_student(self, client: AsyncClient, professor):
        """Test that a Professor may create a Student"""
        response = await client.post('/api/users', json=new_user_payload('Student'), headers=professor.headers)
        assert response.status_code == 201

    async def test_professor_cannot_create_professor(self, client: AsyncClient, professor):
        """Test the Professor creation restriction"""
        response = await client.post('/api/users', json=new_user_payload('Professor'), headers=professor.headers)

        assert response.status_code == 403
        assert response.json() == {'error': 'Professors can only create Students and Supporting Staff'}

    async def test_student_cannot_create(self, client: AsyncClient, student):
        """Test that Students are rejected before any creation"""
        response = await client.post('/api/users', json=new_user_payload('Student'), headers=student.headers)

        assert response.status_code == 403
        assert response.json() == {'error': 'Access denied. Insufficient permissions.'}


class TestUpdateUser:
    """Tests for profile updates"""

    async def test_self_rename(self, client: AsyncClient, student):
        """Test that a user may rename themselves"""
        response = await client.put(f'/api/users/{student.id}', json={'name': 'New Name'}, headers=student.headers)

        assert response.status_code == 200
        assert response.json()['message'] == 'User updated successfully'
        assert response.json()['user']['name'] == 'New Name'

    async def test_self_role_change_denied(self, client: AsyncClient, student):
        """Test that a Student cannot promote themselves"""
        response = await client.put(f'/api/users/{student.id}', json={'role': 'HOD'}, headers=student.headers)

        assert response.status_code == 403

    async def test_professor_cannot_edit_others(self, client: AsyncClient, professor, student):
        """Test that only HOD edits other profiles"""
        response = await client.put(f'/api/users/{student.id}', json={'name': 'X'}, headers=professor.headers)

        assert response.status_code == 403

    async def test_hod_changes_role(self, client: AsyncClient, hod, student):
        """Test that HOD may change another user's role"""
        response = await client.put(
            f'/api/users/{student.id}', json={'role': 'Supporting Staff'}, headers=hod.headers
        )

        assert response.status_code == 200
        assert response.json()['user']['role'] == 'Supporting Staff'

    async def test_null_name_rejected(self, client: AsyncClient, student):
        """Test that an explicit null name is a 400 and the profile is untouched"""
        response = await client.put(f'/api/users/{student.id}', json={'name': None}, headers=student.headers)

        assert response.status_code == 400
        assert 'Name cannot be empty' in response.json()['error']
        profile = await client.get(f'/api/users/{student.id}', headers=student.headers)
        assert profile.json()['user']['name'] == student.name

    async def test_blank_name_rejected(self, client: AsyncClient, hod, student):
        """Test that a whitespace name is a 400"""
        response = await client.put(f'/api/users/{student.id}', json={'name': '   '}, headers=hod.headers)

        assert response.status_code == 400

    async def test_null_name_rejected_by_service(self, db_session, hod, student):
        """Test that the service refuses a null name even without request validation"""
        with pytest.raises(ValidationError):
            await UserService(db_session, feed=ChangeFeed()).update_user(hod.actor, student.id, {'name': None})

    async def test_hod_cannot_change_own_role(self, client: AsyncClient, hod):
        """Test that the HOD cannot demote themselves"""
        response = await client.put(f'/api/users/{hod.id}', json={'role': 'Professor'}, headers=hod.headers)

        assert response.status_code == 400
        assert response.json() == {'error': 'You cannot change your own role'}
        profile = await client.get(f'/api/users/{hod.id}', headers=hod.headers)
        assert profile.json()['user']['role'] == 'HOD'

    async def test_hod_keeps_own_role(self, client: AsyncClient, hod):
        """Test that resending the current role alongside a rename is allowed"""
        response = await client.put(
            f'/api/users/{hod.id}', json={'name': 'Dr. Rao', 'role': 'HOD'}, headers=hod.headers
        )

        assert response.status_code == 200
        assert response.json()['user']['name'] == 'Dr. Rao'

    async def test_online_status(self, client: AsyncClient, student):
        """Test the presence heartbeat"""
        response = await client.patch('/api/users/status/online', json={'online_status': True}, headers=student.headers)

        assert response.status_code == 200
        assert response.json()['user']['online_status'] is True
        assert response.json()['user']['last_seen_at'] is not None


class TestDeleteUser:
    """Tests for HOD-only deletion"""

    async def test_hod_deletes_user_and_tasks(self, client: AsyncClient, hod, student):
        """Test that deleting a user removes their profile and tasks"""
        created = await client.post('/api/tasks', json={
            'title': 'Return lab equipment',
            'assigned_to': student.id,
        }, headers=hod.headers)
        task_id = created.json()['task']['id']

        response = await client.delete(f'/api/users/{student.id}', headers=hod.headers)

        assert response.status_code == 200
        assert response.json() == {'message': 'User deleted successfully'}
        assert (await client.get(f'/api/users/{student.id}', headers=hod.headers)).status_code == 404
        assert (await client.get(f'/api/tasks/{task_id}', headers=hod.headers)).status_code == 404

    async def test_deleted_user_cannot_log_in(self, client: AsyncClient, hod, student):
        """Test that the identity account goes with the profile"""
        await client.delete(f'/api/users/{student.id}', headers=hod.headers)

        response = await client.post('/api/auth/login', json={
            'email': student.email,
            'password': student.password,
        })
        assert response.status_code == 401

    async def test_created_by_cleared(self, client: AsyncClient, hod, make_member):
        """Test that deleting a creator keeps the users it created"""
        from agileflow.models.user import UserRole
        professor = await make_member(UserRole.PROFESSOR)
        created = await client.post('/api/users', json=new_user_payload('Student'), headers=professor.headers)
        created_id = created.json()['user']['id']

        await client.delete(f'/api/users/{professor.id}', headers=hod.headers)

        response = await client.get(f'/api/users/{created_id}', headers=hod.headers)
        assert response.status_code == 200
        assert response.json()['user']['created_by'] is None

    async def test_hod_cannot_delete_self(self, client: AsyncClient, hod):
        """Test that self-deletion is refused"""
        response = await client.delete(f'/api/users/{hod.id}', headers=hod.headers)

        assert response.status_code == 400
        assert response.json() == {'error': 'You cannot delete your own account'}

    async def test_professor_cannot_delete(self, client: AsyncClient, professor, student):
        """Test that deletion is HOD only"""
        response = await client.delete(f'/api/users/{student.id}', headers=professor.headers)

        assert response.status_code == 403
        assert response.json() == {'error': 'Access denied. HOD only.'}

    async def test_delete_unknown(self, client: AsyncClient, hod):
        """Test that deleting a missing user is a 404"""
        response = await client.delete(f'/api/users/{uuid.uuid4()}', headers=hod.headers)
        assert response.status_code == 404
