from errors import RemoteRejected, RemoteUnavailable
from local_store import CROPS_KEY, FARMLANDS_KEY, profile_key

FARMLAND = {'name': 'North Field', 'location': 'County Road 42', 'size_hectares': '5.5', 'soil_type': 'Loamy'}
CROP = {'name': 'Maize', 'variety': 'H614', 'growth_period_days': 120,
        'water_requirement': 'Moderate', 'ideal_temperature': '18-27°C'}


def work_offline(repo, remote, identity):
    remote.fail('*', RemoteUnavailable('network down'))
    profile = repo.ensure_profile(identity)
    repo.create_farmland(profile['id'], FARMLAND)
    repo.create_crop(CROP)
    remote.recover()
    return profile


def test_sync_promotes_local_profile_and_pushes_records(repo, remote, local, identity):
    profile = work_offline(repo, remote, identity)

    report = repo.sync(identity)

    assert report.remote_ok
    assert report.profile_promoted == profile['id']
    assert report.farmlands_pushed == 1
    assert report.crops_pushed == 1
    assert report.failed == []
    assert remote.tables['farmers'][0]['id'] == profile['id']
    assert 'synced' not in remote.tables['farmlands'][0]
    assert local.get(profile_key('123456')) is None
    assert local.get_list(FARMLANDS_KEY) == []
    assert local.get_list(CROPS_KEY) == []

    again = repo.sync(identity)
    assert (again.farmlands_pushed, again.crops_pushed) == (0, 0)
    assert repo.ensure_profile(identity)['source'] == 'remote'


def test_sync_adopts_existing_remote_profile_and_repoints_farmlands(repo, remote, local, identity):
    work_offline(repo, remote, identity)
    remote.tables['farmers'].append({'id': 'from-other-device', 'user_id': '123456'})

    report = repo.sync(identity)

    assert report.profile_promoted == 'from-other-device'
    assert len(remote.tables['farmers']) == 1
    assert remote.tables['farmlands'][0]['farmer_id'] == 'from-other-device'


def test_sync_with_remote_down_changes_nothing(repo, remote, local, identity):
    profile = work_offline(repo, remote, identity)
    remote.fail('*', RemoteUnavailable('still down'))

    report = repo.sync(identity)

    assert not report.remote_ok
    assert report.error == 'still down'
    assert local.get(profile_key('123456'))['id'] == profile['id']
    assert len(local.get_list(FARMLANDS_KEY)) == 1


def test_rows_that_fail_to_push_stay_local(repo, remote, local, identity):
    remote.tables['farmers'].append({'id': 'f-1', 'user_id': '123456'})
    remote.fail('insert', RemoteUnavailable('down'))
    repo.create_farmland('f-1', FARMLAND)
    repo.create_crop(CROP)
    remote.recover()
    remote.fail('insert', RemoteRejected('crops: permission denied', status=403), times=1)

    report = repo.sync(identity)

    # farmlands are pushed first, so the one-off rejection hits the farmland
    assert report.farmlands_pushed == 0
    assert report.crops_pushed == 1
    assert report.failed[0]['table'] == 'farmlands'
    assert len(local.get_list(FARMLANDS_KEY)) == 1
    assert local.get_list(CROPS_KEY) == []


def test_rejected_profile_is_not_reported_as_outage(repo, remote, local, identity):
    profile = work_offline(repo, remote, identity)
    remote.fail('insert', RemoteRejected('invalid input syntax for type uuid', status=400, code='22P02'))

    report = repo.sync(identity)

    assert report.rejected
    assert report.remote_ok
    assert report.error == 'invalid input syntax for type uuid'
    assert local.get(profile_key('123456'))['id'] == profile['id']
    assert len(local.get_list(FARMLANDS_KEY)) == 1
