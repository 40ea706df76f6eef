from decimal import Decimal

from tokenprices.db.repos.job_repo import JobRepo
from tokenprices.db.repos.price_repo import PriceRepo
from tokenprices.domain.models.price import PricePoint

TOKEN = "0x1f9840a85d5af5bf1d1762f925bdaddc4201f984"
NOW = 1_700_049_600


async def _create_job(session_factory, job_id: str, start: int = NOW - 3 * 86_400, total_days: int = 4) -> None:
    async with session_factory() as s:
        await JobRepo(s).create(
            job_id=job_id, token_address=TOKEN, network="ethereum", start_timestamp=start, total_days=total_days,
        )
        await s.commit()


class TestBackfillAPI:
    async def test_schedule_and_complete(self, client, runner):
        res = await client.post("/api/backfill", json={"token": TOKEN, "network": "ethereum"})

        assert res.status_code == 202
        data = res.json()
        assert data["estimated_days"] == 4
        assert data["message"] == "Historical price fetch scheduled successfully"
        assert data["job_id"].startswith("job-")

        await runner.join(data["job_id"])
        status = await client.get(f"/api/backfill/{data['job_id']}")

        assert status.status_code == 200
        body = status.json()
        assert body["status"] == "completed"
        assert body["total_days"] == 4
        assert body["completed_days"] == 4
        assert body["token_address"] == TOKEN
        assert body["error_message"] is None
        assert body["completed_at"] is not None

    async def test_already_cached(self, client, session_factory):
        async with session_factory() as s:
            await PriceRepo(s).insert_batch([
                PricePoint(token_address=TOKEN, network="ethereum", timestamp=NOW, price=Decimal("1")),
            ])
            await s.commit()

        res = await client.post("/api/backfill", json={"token": TOKEN, "network": "ethereum"})

        assert res.status_code == 202
        data = res.json()
        assert data["estimated_days"] == 0
        assert data["message"] == "All historical data already cached"

        status = await client.get(f"/api/backfill/{data['job_id']}")
        assert status.status_code == 200
        assert status.json()["status"] == "completed"
        assert status.json()["total_days"] == 0

    async def test_conflict_with_active_job(self, client, session_factory):
        await _create_job(session_factory, "job-active")

        res = await client.post("/api/backfill", json={"token": TOKEN, "network": "ethereum"})

        assert res.status_code == 409
        assert res.json()["job_id"] == "job-active"

    async def test_missing_fields(self, client):
        res = await client.post("/api/backfill", json={"network": "ethereum"})
        assert res.status_code == 400
        assert res.json()["detail"] == "Missing required fields: token"

    async def test_unknown_job(self, client):
        res = await client.get("/api/backfill/job-nope")
        assert res.status_code == 404

    async def test_cancel_unknown_job(self, client):
        res = await client.post("/api/backfill/job-nope/cancel")
        assert res.status_code == 404

    async def test_cancel_job_running_elsewhere(self, client, session_factory, runner):
        await _create_job(session_factory, "job-elsewhere")

        res = await client.post("/api/backfill/job-elsewhere/cancel")

        assert res.status_code == 200
        assert res.json() == {"job_id": "job-elsewhere", "cancelled": True}

        await runner.execute("job-elsewhere")
        status = await client.get("/api/backfill/job-elsewhere")
        assert status.json()["status"] == "error"
        assert status.json()["error_message"] == "Cancelled by request"
        assert status.json()["completed_days"] == 0

    async def test_cancel_finished_job(self, client, runner):
        res = await client.post("/api/backfill", json={"token": TOKEN, "network": "ethereum"})
        job_id = res.json()["job_id"]
        await runner.join(job_id)

        cancelled = await client.post(f"/api/backfill/{job_id}/cancel")
        assert cancelled.json() == {"job_id": job_id, "cancelled": False}

    async def test_resume_left_behind_job(self, client, session_factory, runner):
        await _create_job(session_factory, "job-orphan")

        res = await client.post("/api/backfill/job-orphan/resume")
        assert res.status_code == 202
        await runner.join("job-orphan")

        status = await client.get("/api/backfill/job-orphan")
        assert status.json()["status"] == "completed"
        assert status.json()["completed_days"] == 4

    async def test_resume_finished_job_rejected(self, client, runner):
        res = await client.post("/api/backfill", json={"token": TOKEN, "network": "ethereum"})
        job_id = res.json()["job_id"]
        await runner.join(job_id)

        resumed = await client.post(f"/api/backfill/{job_id}/resume")
        assert resumed.status_code == 400

    async def test_resume_unknown_job(self, client):
        res = await client.post("/api/backfill/job-nope/resume")
        assert res.status_code == 404
