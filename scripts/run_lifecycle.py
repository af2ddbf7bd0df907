# scripts/run_lifecycle.py
from __future__ import annotations

from backoffice.bootstrap import build_service
from backoffice.config_loader import load_system_config
from lifecycle.models import UserRole


def staff(service, name, email, role):
    # the sqlite store keeps users between runs
    return service.find_user_by_email(email) or service.register_user(name, email, "<hashed>", role)


cfg = load_system_config("config/system_config.yaml")
service = build_service(cfg)

client = service.list_clients()[0]
receiver = staff(service, "Ana Souza", "ana@cme.local", UserRole.EMPLOYEE)
manager = staff(service, "Carlos Lima", "carlos@cme.local", UserRole.MANAGER)

eq = service.create_equipment(
    client_id=client.id,
    received_by=receiver.id,
    description="Caixa de instrumental cirúrgico geral",
    equipment_type="Kit",
    quantity=1,
)
print("1) RECEIVED:", eq.code, eq.status.value)

steps = service.list_cleaning_steps(eq.id)
for i, step in enumerate(steps, start=2):
    service.set_step_completion(step.id, True)
    current = service.get_equipment(eq.id)
    print(f"{i}) {step.step}: {current.status.value} ({service.cleaning_progress(eq.id)}%)")

returned = service.return_equipment(eq.id, returned_by=manager.id, comments="Entregue ao centro cirúrgico")
print("8) RETURNED:", returned.status.value, returned.returned_at.isoformat())

print("DONE. Check logs/ and audit sqlite:", cfg.db_path)
