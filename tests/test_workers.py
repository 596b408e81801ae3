import threading
import time

import pytest

from core.db import connect
from movieimport.store import CatalogStore
from movieimport.workers import BackgroundPool, PoolClosedError, UpdateJob, UpdateQueue


def test_caller_runs_when_queue_full():
    done = []
    lock = threading.Lock()
    main_thread = threading.current_thread().name
    ran_on = set()

    def make_job(index):
        def job():
            time.sleep(0.002)
            with lock:
                done.append(index)
                ran_on.add(threading.current_thread().name)

        return job

    pool = BackgroundPool(max_workers=5, max_queue=10)
    for index in range(100):
        pool.submit(make_job(index))
    assert pool.shutdown(timeout=30)

    assert sorted(done) == list(range(100))
    stats = pool.stats
    assert stats["submitted"] == 100
    assert stats["completed"] == 100
    assert stats["caller_ran"] > 0
    assert main_thread in ran_on


def test_failing_job_is_counted_not_raised():
    pool = BackgroundPool(max_workers=1, max_queue=1)

    def boom():
        raise ValueError("boom")

    pool.submit(boom)
    pool.shutdown(timeout=5)

    assert pool.stats["failed"] == 1


def test_submit_after_shutdown_is_rejected():
    pool = BackgroundPool(max_workers=2, max_queue=2)
    assert pool.shutdown(timeout=5)
    assert pool.shutdown(timeout=5)
    with pytest.raises(PoolClosedError):
        pool.submit(lambda: None)


def test_update_queue_survives_failures():
    applied = []

    def apply(job):
        if job.row_id == 2:
            raise RuntimeError("database is locked")
        if job.row_id == 3:
            return False
        applied.append(job.row_id)
        return True

    queue = UpdateQueue(apply)
    for row_id in range(1, 6):
        queue.put(UpdateJob("movies", row_id, {"poster_path": "poster.jpg"}))
    queue.close()
    assert queue.join(timeout=5)

    assert applied == [1, 4, 5]
    assert queue.applied == 3
    assert queue.failed == 2


def test_put_after_close_is_dropped():
    seen = []
    queue = UpdateQueue(lambda job: seen.append(job) or True)
    queue.close()
    queue.close()
    queue.put(UpdateJob("movies", 1, {"poster_path": "p.jpg"}))
    assert queue.join(timeout=5)
    assert seen == []


def test_concurrent_image_updates_are_not_lost(tmp_path):
    db_path = tmp_path / "movies.db"
    conn = connect(db_path)
    CatalogStore(conn)
    conn.execute("INSERT INTO movies (movie_name, tmdb_id) VALUES ('Heat', 949)")
    movie_id = conn.execute("SELECT movie_id FROM movies").fetchone()[0]

    writer_conn = connect(db_path)
    writer = CatalogStore(writer_conn)
    updates = UpdateQueue(lambda job: writer.update_record(job.table, job.row_id, job.values), on_stop=writer_conn.close)
    pool = BackgroundPool(max_workers=2, max_queue=4)
    barrier = threading.Barrier(2)

    def download(column, name):
        def job():
            barrier.wait(timeout=5)
            updates.put(UpdateJob("movies", movie_id, {column: name}))

        return job

    pool.submit(download("poster_path", "poster.jpg"))
    pool.submit(download("backdrop_path", "backdrop.jpg"))
    assert pool.shutdown(timeout=10)
    updates.close()
    assert updates.join(timeout=10)

    row = conn.execute("SELECT poster_path, backdrop_path FROM movies WHERE movie_id=?", (movie_id,)).fetchone()
    conn.close()
    assert tuple(row) == ("poster.jpg", "backdrop.jpg")
    assert updates.applied == 2
