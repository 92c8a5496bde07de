import os
import uuid

import requests

BASE_URL = os.getenv("BASE_URL", "http://127.0.0.1:5000")
PASSWORD = "hanoihue"


# Step 1: Register User
def register_user(email, role, **extra):
    url = f"{BASE_URL}/auth/register"
    payload = {
        "email": email,
        "password": PASSWORD,
        "first_name": role.title(),
        "last_name": "Smoke",
        "company_name": f"{role.title()} Smoke LLC",
        "role": role,
        **extra,
    }
    response = requests.post(url, json=payload)
    print("Register Response:", response.json())
    return response.status_code == 201


# Step 2: Login User
def login_user(email):
    url = f"{BASE_URL}/auth/login"
    response = requests.post(url, json={"email": email, "password": PASSWORD})
    print("Login Response:", response.status_code)
    if response.status_code == 200:
        return response.json().get("access_token")
    return None


# Step 3: Update Profile and add a carrier
def build_dispatcher_profile(token, carrier_mc):
    headers = {"Authorization": f"Bearer {token}"}
    payload = {"years_experience": 3, "specialties": ["Dry Van", "Reefer"], "carrier_scout_subscribed": True}
    response = requests.put(f"{BASE_URL}/profile/update", json=payload, headers=headers)
    print("Update Profile Response:", response.json().get("verification_tier"))

    response = requests.post(
        f"{BASE_URL}/profile/carriers",
        json={"carrier_name": "Smoke Carrier", "mc_number": carrier_mc},
        headers=headers,
    )
    print("Add Carrier Response:", response.json())

    response = requests.get(f"{BASE_URL}/profile/view", headers=headers)
    print("Verification Tier:", response.json().get("verification_tier"))


# Step 4: Connect the two users
def connect(dispatcher_token, carrier_token, carrier_id):
    response = requests.post(
        f"{BASE_URL}/connections/request/{carrier_id}",
        headers={"Authorization": f"Bearer {dispatcher_token}"},
    )
    print("Connection Request Response:", response.json())
    if response.status_code != 201:
        return
    connection_id = response.json()["id"]

    response = requests.post(
        f"{BASE_URL}/connections/{connection_id}/accept",
        headers={"Authorization": f"Bearer {carrier_token}"},
    )
    print("Accept Response:", response.json())


# Main Flow
if __name__ == "__main__":
    suffix = uuid.uuid4().hex[:8]
    carrier_mc = f"MC{int(suffix, 16) % 1000000}"
    dispatcher_email = f"dispatcher-{suffix}@example.com"
    carrier_email = f"carrier-{suffix}@example.com"

    if register_user(dispatcher_email, "dispatcher") and register_user(carrier_email, "carrier", mc_number=carrier_mc):
        dispatcher_token = login_user(dispatcher_email)
        carrier_token = login_user(carrier_email)
        if dispatcher_token and carrier_token:
            build_dispatcher_profile(dispatcher_token, carrier_mc)
            carrier_profile = requests.get(
                f"{BASE_URL}/profile/view", headers={"Authorization": f"Bearer {carrier_token}"}
            ).json()
            connect(dispatcher_token, carrier_token, carrier_profile["id"])
        else:
            print("Login failed.")
    else:
        print("Registration failed.")
