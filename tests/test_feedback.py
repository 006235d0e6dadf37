from conftest import ADMIN_EMAIL, ADMIN_NAME, signup_and_login

SCENARIO = {
    'facultyName': 'Dr. X',
    'subject': 'Math',
    'feedbackText': 'The projector is broken and wifi is down',
    'isAnonymous': True,
}


def login_admin(client, backend):
    backend.add_account(ADMIN_EMAIL, 'AdminPass1')
    return client.post('/api/auth/login', json={'email': ADMIN_EMAIL, 'password': 'AdminPass1'})


def test_submit_requires_login(client):
    resp = client.post('/api/feedback/submit', json=SCENARIO)
    assert resp.status_code == 401
    assert resp.get_json() == {'error': 'Please login to submit feedback'}


def test_my_feedback_requires_login(client):
    resp = client.get('/api/feedback/my-feedback')
    assert resp.status_code == 401
    assert resp.get_json() == {'error': 'Please login to view your feedback'}


def test_submit_requires_all_fields(client):
    signup_and_login(client, 'student@example.com')
    resp = client.post('/api/feedback/submit', json={'facultyName': 'Dr. X', 'subject': '  ', 'feedbackText': 'ok'})
    assert resp.status_code == 400
    assert resp.get_json() == {'error': 'All fields are required'}


def test_anonymous_negative_submission_feeds_analytics(client, backend, model):
    signup_and_login(client, 'student@example.com', name='Sam Student')
    resp = client.post('/api/feedback/submit', json=SCENARIO)
    assert resp.status_code == 200
    stored = resp.get_json()['feedback']
    assert stored['student_name'] == 'Anonymous'
    assert stored['student_id'] == backend.accounts['student@example.com']['id']
    assert stored['sentiment'] == 'negative'
    assert stored['is_anonymous'] is True
    assert 'The projector is broken' in model.prompts[0]
    assert backend.feedback_tokens == [f"token-{stored['student_id']}"]

    client.post('/api/auth/logout')
    login_admin(client, backend)
    analytics = client.get('/api/feedback/analytics').get_json()
    keywords = {item['keyword']: item['count'] for item in analytics['topKeywords']}
    assert keywords['projector'] >= 1
    assert keywords['wifi'] >= 1
    assert {'issue': 'projector - Dr. X', 'count': 1} in analytics['topFacultyIssues']
    assert analytics['topSubjectIssues'] == [{'subject': 'Math - Dr. X', 'count': 1}]
    assert analytics['facultyStats'] == {'Dr. X': {'positive': 0, 'negative': 1, 'neutral': 0, 'total': 1}}


def test_named_submission_keeps_student_name(client, model):
    model.answer = 'Positive.'
    signup_and_login(client, 'student@example.com', name='Sam Student')
    resp = client.post('/api/feedback/submit', json=dict(SCENARIO, isAnonymous=False))
    stored = resp.get_json()['feedback']
    assert stored['student_name'] == 'Sam Student'
    assert stored['sentiment'] == 'positive'


def test_submission_succeeds_when_classifier_fails(client, backend, model):
    model.error = TimeoutError('deadline exceeded')
    signup_and_login(client, 'student@example.com')
    resp = client.post('/api/feedback/submit', json=SCENARIO)
    assert resp.status_code == 200
    assert resp.get_json()['message'] == 'Feedback submitted successfully!'
    assert resp.get_json()['feedback']['sentiment'] == 'neutral'
    assert len(backend.feedback) == 1


def test_submission_text_is_sanitized(client, backend):
    signup_and_login(client, 'student@example.com')
    client.post('/api/feedback/submit', json=dict(SCENARIO, feedbackText='<script>alert(1)</script> chair broken'))
    assert '<script>' not in backend.feedback[0]['feedback_text']


def test_non_admin_cannot_list_all_feedback(client):
    signup_and_login(client, 'student@example.com')
    resp = client.get('/api/feedback/all')
    assert resp.status_code == 403
    assert resp.get_json() == {'error': 'Access denied. Admin only.'}


def test_admin_routes_reject_anonymous_callers(client):
    for path in ('/api/feedback/all', '/api/feedback/stats', '/api/feedback/analytics'):
        resp = client.get(path)
        assert resp.status_code == 403
        assert resp.get_json() == {'error': 'Access denied. Admin only.'}


def test_admin_sees_all_feedback_newest_first(client, backend, model):
    signup_and_login(client, 'a@example.com')
    client.post('/api/feedback/submit', json=dict(SCENARIO, subject='First'))
    client.post('/api/feedback/submit', json=dict(SCENARIO, subject='Second'))
    client.post('/api/auth/logout')

    login_admin(client, backend)
    rows = client.get('/api/feedback/all').get_json()['feedback']
    assert [r['subject'] for r in rows] == ['Second', 'First']


def test_stats_counts_add_up(client, backend, model):
    signup_and_login(client, 'a@example.com')
    for answer in ('positive', 'negative', 'negative', 'neutral', 'no idea'):
        model.answer = answer
        client.post('/api/feedback/submit', json=SCENARIO)
    client.post('/api/auth/logout')

    login_admin(client, backend)
    stats = client.get('/api/feedback/stats').get_json()
    assert stats == {'total': 5, 'positive': 1, 'negative': 2, 'neutral': 2}
    assert stats['total'] == stats['positive'] + stats['negative'] + stats['neutral']


def test_my_feedback_only_returns_own_entries(client, backend):
    signup_and_login(client, 'a@example.com')
    client.post('/api/feedback/submit', json=dict(SCENARIO, subject='Mine'))
    client.post('/api/auth/logout')

    signup_and_login(client, 'b@example.com')
    client.post('/api/feedback/submit', json=dict(SCENARIO, subject='Theirs'))
    rows = client.get('/api/feedback/my-feedback').get_json()['feedback']
    assert [r['subject'] for r in rows] == ['Theirs']


def test_analytics_empty_corpus(client, backend):
    login_admin(client, backend)
    resp = client.get('/api/feedback/analytics')
    assert resp.status_code == 200
    assert resp.get_json() == {
        'topKeywords': [],
        'topFacultyIssues': [],
        'topSubjectIssues': [],
        'facultyStats': {},
    }


def test_admin_login_name_is_canonical(client, backend):
    resp = login_admin(client, backend)
    assert resp.get_json()['user']['name'] == ADMIN_NAME


def test_ampersands_are_stored_literally(client, backend):
    signup_and_login(client, 'student@example.com')
    client.post('/api/feedback/submit', json=dict(SCENARIO, facultyName='Dr. A & B', subject='R&D'))
    stored = backend.feedback[0]
    assert stored['faculty_name'] == 'Dr. A & B'
    assert stored['subject'] == 'R&D'


def test_markup_only_text_is_rejected(client, backend):
    signup_and_login(client, 'student@example.com')
    resp = client.post('/api/feedback/submit', json=dict(SCENARIO, feedbackText='<b></b>'))
    assert resp.status_code == 400
    assert resp.get_json() == {'error': 'All fields are required'}
    assert backend.feedback == []
