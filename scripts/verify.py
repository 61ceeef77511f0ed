import httpx
import asyncio
import os

BASE_URL = os.getenv("BASE_URL", "http://localhost:8000")

async def run_verification():
    print(f"🚀  Starting Verification against {BASE_URL}...\n")

    async with httpx.AsyncClient(base_url=BASE_URL, timeout=10.0) as client:
        # 1. Health Check
        print("1. [Health] Checking /health...")
        try:
            resp = await client.get("/health")
            if resp.status_code == 200 and resp.json().get("status") == "ok":
                print("   ✅  Health Check Passed")
            else:
                print(f"   ❌  Health Check Failed: {resp.text}")
                return
        except httpx.HTTPError as e:
            print(f"   ❌  Connection Error: {e}")
            return

        # 2. Create Link
        print("\n2. [API] Creating Link...")
        destination = "https://www.example.com/"
        resp = await client.post("/v1/links", json={"name": "verify", "destination": destination})
        if resp.status_code == 201:
            link = resp.json()
            print(f"   ✅  Created: {link['token']} at {resp.headers.get('location')}")
        else:
            print(f"   ❌  Create Failed: {resp.status_code} {resp.text}")
            return

        # 3. Verify Redirect
        print("\n3. [API] Verifying Redirect...")
        resp = await client.get(f"/{link['token']}", follow_redirects=False)
        if resp.status_code == 302 and resp.headers.get("location") == destination:
            print(f"   ✅  Redirect Location matches: {resp.headers['location']}")
        else:
            print(f"   ❌  Redirect Failed: {resp.status_code} {resp.headers.get('location')}")

        # 4. Verify Analytics
        print("\n4. [API] Verifying Visit Data...")
        resp = await client.get(f"/v1/links/{link['id']}/visits")
        if resp.status_code == 200 and resp.json()["total_visits"] >= 1:
            data = resp.json()
            print(f"   ✅  Visits recorded: total={data['total_visits']} per_day={data['visits_per_day']}")
        else:
            print(f"   ❌  Visit Data Failed: {resp.status_code} {resp.text}")

        # 5. Optimistic concurrency
        print("\n5. [API] Verifying Edit Conflicts...")
        stale = {"X-Expected-Version": str(link["version"])}
        resp1 = await client.patch(f"/v1/links/{link['id']}", json={"name": "verify-1"}, headers=stale)
        resp2 = await client.patch(f"/v1/links/{link['id']}", json={"name": "verify-2"}, headers=stale)
        if resp1.status_code == 200 and resp2.status_code == 409:
            print(f"   ✅  Stale write rejected (version now {resp1.json()['version']})")
        else:
            print(f"   ❌  Conflict Check Failed: {resp1.status_code} / {resp2.status_code}")

        # 6. Cleanup
        print("\n6. [API] Deleting Link...")
        resp = await client.delete(f"/v1/links/{link['id']}")
        if resp.status_code == 204:
            print("   ✅  Deleted")
        else:
            print(f"   ❌  Delete Failed: {resp.status_code}")

        # 7. Metrics
        print("\n7. [Observability] Verifying Metrics...")
        resp = await client.get("/metrics")
        if resp.status_code == 200 and "http_requests_total" in resp.text:
            print("   ✅  Metrics Endpoint Exposed")
        else:
            print(f"   ❌  Metrics Failed: {resp.status_code}")

    print("\n✨ Verification Complete!")

if __name__ == "__main__":
    asyncio.run(run_verification())
