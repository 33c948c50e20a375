# loyerfacile/cli/__main__.py
from __future__ import annotations

import argparse

from .seed_demo import seed_demo


def main() -> None:
    p = argparse.ArgumentParser()
    p.add_argument("--space-slug", default="demo")
    p.add_argument("--space-name", default="Agence Démo")
    p.add_argument("--manager-email", default="gestionnaire@demo.local")
    p.add_argument("--tenant-email", default="locataire@demo.local")
    p.add_argument("--no-sample-lease", action="store_true")
    args = p.parse_args()

    out = seed_demo(
        space_slug=args.space_slug,
        space_name=args.space_name,
        manager_email=args.manager_email,
        tenant_email=args.tenant_email,
        create_sample_lease=(not args.no_sample_lease),
    )
    print(
        {
            "ok": True,
            "space_slug": out.space_slug,
            "manager_email": out.manager_email,
            "tenant_email": out.tenant_email,
            "sample_property_id": out.property_id,
            "sample_lease_id": out.lease_id,
            "manager_token": out.manager_token,
            "tenant_token": out.tenant_token,
        }
    )


if __name__ == "__main__":
    main()
