"""Request payload builders shared by the API tests."""


def provider_payload(license_number: str = "MD-1000", specialty: str = "Cardiology", **extra) -> dict:
    body = {
        "specialty": specialty,
        "licenseNumber": license_number,
        "licenseState": "IL",
        "licenseExpiration": "2099-12-31T00:00:00Z",
    }
    body.update(extra)
    return body


def patient_payload(date_of_birth: str = "1990-01-01", **extra) -> dict:
    body = {"dateOfBirth": date_of_birth}
    body.update(extra)
    return body


def record_payload(patient_id: str, **extra) -> dict:
    body = {
        "patient": patient_id,
        "recordType": "consultation",
        "title": "Annual checkup",
    }
    body.update(extra)
    return body
