"""Configuration for the salon booking service.

All business settings centralized here - modify as needed without touching code.
Environment variables (loaded from .env) override the runtime settings.
"""
import os
from dotenv import load_dotenv

load_dotenv()

SALON = {
    "name": "L'essence Studio",
    "slogan": "Sua essência, nossa arte.",
    "address": "Avenida Jovita Feitosa, 647. Parquelândia. Fortaleza - CE.",
}

SERVICES = [
    {
        "id": "1",
        "name": "Corte L'essence Signature",
        "description": "Corte personalizado com visagismo, lavagem relaxante e finalização premium.",
        "price": 180,
        "duration_minutes": 60,
        "category": "hair",
    },
    {
        "id": "2",
        "name": "Coloração Global",
        "description": "Coloração completa da raiz às pontas com produtos de alta performance e proteção.",
        "price": 350,
        "duration_minutes": 120,
        "category": "hair",
    },
    {
        "id": "3",
        "name": "Manicure Spa",
        "description": "Tratamento completo para mãos, inclui esfoliação, hidratação e esmaltação.",
        "price": 65,
        "duration_minutes": 45,
        "category": "nails",
    },
    {
        "id": "4",
        "name": "Pedicure Relaxante",
        "description": "Cuidado especial para os pés com massagem relaxante e pedras quentes.",
        "price": 75,
        "duration_minutes": 60,
        "category": "nails",
    },
    {
        "id": "5",
        "name": "Limpeza de Pele Profunda",
        "description": "Higienização profunda, extração de comedões e máscara calmante de ouro.",
        "price": 220,
        "duration_minutes": 90,
        "category": "skin",
    },
    {
        "id": "6",
        "name": "Massagem Relaxante",
        "description": "Técnica sueca para alívio de tensões e relaxamento total do corpo.",
        "price": 180,
        "duration_minutes": 60,
        "category": "spa",
    },
]

PROFESSIONALS = [
    {"id": "1", "name": "Ana Souza", "role": "Hairstylist Senior"},
    {"id": "2", "name": "Beatriz Lima", "role": "Nail Designer"},
    {"id": "3", "name": "Carla Dias", "role": "Esteticista"},
    {"id": "4", "name": "Daniela Rocha", "role": "Massoterapeuta"},
]

# Weekdays use Sunday=0 numbering: Tuesday (2) through Saturday (6).
BUSINESS_HOURS = {
    "start": 9,
    "end": 19,  # exclusive, last slot at 18:30
    "days": [2, 3, 4, 5, 6],
}

BOOKING_WINDOW_DAYS = 14
SLOT_MINUTES = 30
DEPOSIT_RATE = 0.5

# Persistence keys (one JSON snapshot per key)
SERVICES_KEY = "lessence_services"
PROFESSIONALS_KEY = "lessence_professionals"
APPOINTMENTS_KEY = "lessence_appointments"
USERS_KEY = "lessence_users"
SESSION_KEY_PREFIX = "lessence_session:"

# Runtime settings
STORAGE_URL = os.getenv("SALON_STORAGE_URL", "sqlite:///salon.db")
SUPER_ADMIN_USERNAME = os.getenv("SUPER_ADMIN_USERNAME", "Admin@Manu")
SUPER_ADMIN_PASSWORD = os.getenv("SUPER_ADMIN_PASSWORD", "Admin@Manu")
SUPER_ADMIN_PROFILE = {
    "name": "Super Admin",
    "email": "admin@lessencestudio.com",
    "cpf": "000.000.000-00",
    "phone": "(00) 00000-0000",
}
PAYMENT_DELAY_SECONDS = float(os.getenv("PAYMENT_DELAY_SECONDS", "2.0"))
ASSISTANT_MODEL = os.getenv("ASSISTANT_MODEL", "gpt-4o-mini")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
