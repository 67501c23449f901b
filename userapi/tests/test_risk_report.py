"""
리스크 리포트 사용 기록 API 테스트 (정적 API 키)
"""
import uuid
from datetime import datetime, timedelta, timezone

import pytest

from conftest import API_KEY_HEADERS
from core.api_key import is_valid_key, mask_key

BASE = "/api/v1/risk-report/usage"


def make_record(user_id: str | None = None, **overrides) -> dict:
    request_time = datetime.now(timezone.utc) - timedelta(minutes=10)
    record = {
        "user_id": user_id or f"u-{uuid.uuid4().hex[:8]}",
        "ticker": "AAPL",
        "request_time": request_time.isoformat(),
        "response_time": (request_time + timedelta(seconds=3)).isoformat(),
        "prompt_tokens": 100,
        "completion_tokens": 50,
        "total_tokens": 150,
        "ai_response": "리스크 낮음",
        "market_state": "REGULAR",
        "response_duration_ms": 3000,
    }
    record.update(overrides)
    return record


# ===== API 키 =====

def test_API_키_없으면_401(client):
    response = client.post(BASE, json=make_record())
    assert response.status_code == 401
    assert response.json()["message"] == "API key missing"


def test_잘못된_API_키_401(client):
    response = client.post(BASE, json=make_record(), headers={"X-API-Key": "wrong-key"})
    assert response.status_code == 401


def test_앞뒤_공백은_무시(client):
    response = client.post(BASE, json=make_record(), headers={"X-API-Key": "  other-key-456  "})
    assert response.status_code == 201


def test_API_키_설정이_비어있으면_모두_거부(client, monkeypatch):
    from core.config import settings

    monkeypatch.setattr(settings, "risk_report_api_keys", "")
    response = client.post(BASE, json=make_record(), headers=API_KEY_HEADERS)
    assert response.status_code == 401


def test_키_비교와_마스킹():
    assert is_valid_key("abc", ["xyz", " abc "])
    assert not is_valid_key("abcd", ["abc"])
    assert mask_key("test-key-123") == "test-key****"
    assert mask_key("short") == "****"


# ===== 생성/조회 =====

def test_사용_기록_생성_및_조회(client):
    record = make_record(stock_price=187.35)
    created = client.post(BASE, json=record, headers=API_KEY_HEADERS)

    assert created.status_code == 201
    data = created.json()
    assert data["id"]
    assert data["ticker"] == "AAPL"
    assert data["stock_price"] == 187.35

    fetched = client.get(f"{BASE}/{data['id']}", headers=API_KEY_HEADERS)
    assert fetched.status_code == 200
    assert fetched.json()["user_id"] == record["user_id"]


def test_없는_기록_조회(client):
    response = client.get(f"{BASE}/missing-id", headers=API_KEY_HEADERS)
    assert response.status_code == 404
    assert response.json()["code"] == 40001


@pytest.mark.parametrize("overrides", [
    {"ticker": "aapl"},
    {"ticker": "TOOLONGTICKER"},
    {"total_tokens": 999},
    {"prompt_tokens": -1, "total_tokens": 49},
    {"market_state": "LUNCH"},
    {"response_time": (datetime.now(timezone.utc) + timedelta(hours=1)).isoformat()},
    {"request_time": datetime.now(timezone.utc).isoformat()},  # response_time보다 늦음
])
def test_업무_규칙_위반은_400(client, overrides):
    response = client.post(BASE, json=make_record(**overrides), headers=API_KEY_HEADERS)
    assert response.status_code == 400
    assert response.json()["code"] == 10007


def test_티커에_점_허용(client):
    response = client.post(BASE, json=make_record(ticker="BRK.B"), headers=API_KEY_HEADERS)
    assert response.status_code == 201


# ===== 일괄 생성 =====

def test_일괄_생성_부분_성공(client):
    user_id = f"u-{uuid.uuid4().hex[:8]}"
    records = [
        make_record(user_id),
        make_record(user_id, ticker="bad"),
        make_record(user_id, ticker="MSFT"),
    ]
    response = client.post(f"{BASE}/batch", json={"records": records}, headers=API_KEY_HEADERS)

    assert response.status_code == 201
    data = response.json()
    assert data["success_count"] == 2
    assert data["failure_count"] == 1
    assert len(data["record_ids"]) == 2
    assert data["errors"][0].startswith("record 2:")


def test_일괄_생성_개수_제한(client):
    empty = client.post(f"{BASE}/batch", json={"records": []}, headers=API_KEY_HEADERS)
    too_many = client.post(f"{BASE}/batch", json={"records": [make_record()] * 101}, headers=API_KEY_HEADERS)

    assert empty.status_code == 400
    assert too_many.status_code == 400


# ===== 목록/통계 =====

def test_목록은_최신_요청_순(client):
    user_id = f"u-{uuid.uuid4().hex[:8]}"
    base_time = datetime.now(timezone.utc) - timedelta(hours=3)
    for i in range(3):
        request_time = base_time + timedelta(hours=i)
        client.post(BASE, json=make_record(
            user_id,
            request_time=request_time.isoformat(),
            response_time=(request_time + timedelta(seconds=1)).isoformat(),
            ai_response=f"r{i}",
        ), headers=API_KEY_HEADERS)

    response = client.get(BASE, params={"user_id": user_id, "page_size": 2}, headers=API_KEY_HEADERS)
    assert response.status_code == 200
    data = response.json()
    assert [r["ai_response"] for r in data["list"]] == ["r2", "r1"]
    assert data["pagination"] == {"page": 1, "page_size": 2, "total": 3, "total_pages": 2}


def test_목록_티커_필터(client):
    user_id = f"u-{uuid.uuid4().hex[:8]}"
    client.post(BASE, json=make_record(user_id, ticker="TSLA"), headers=API_KEY_HEADERS)
    client.post(BASE, json=make_record(user_id, ticker="NVDA"), headers=API_KEY_HEADERS)

    response = client.get(BASE, params={"user_id": user_id, "ticker": "NVDA"}, headers=API_KEY_HEADERS)
    assert [r["ticker"] for r in response.json()["list"]] == ["NVDA"]


def test_사용자별_통계(client):
    user_id = f"u-{uuid.uuid4().hex[:8]}"
    client.post(BASE, json=make_record(user_id, response_duration_ms=1000), headers=API_KEY_HEADERS)
    client.post(BASE, json=make_record(
        user_id,
        prompt_tokens=10,
        completion_tokens=20,
        total_tokens=30,
        response_duration_ms=3000,
    ), headers=API_KEY_HEADERS)

    response = client.get(f"{BASE}/stats/{user_id}", headers=API_KEY_HEADERS)
    assert response.status_code == 200
    assert response.json() == {
        "user_id": user_id,
        "total_queries": 2,
        "total_tokens": 180,
        "total_prompt_tokens": 110,
        "total_completion_tokens": 70,
        "avg_response_time_ms": 2000,
    }


def test_기록_없는_사용자_통계는_0(client):
    response = client.get(f"{BASE}/stats/nobody-{uuid.uuid4().hex[:6]}", headers=API_KEY_HEADERS)
    assert response.status_code == 200
    assert response.json()["total_queries"] == 0
    assert response.json()["avg_response_time_ms"] == 0
