"""
Le Marché Luxe — audit/middleware.py
Trace dans les logs chaque requête qui modifie des données (POST, PUT, PATCH, DELETE).
"""
import logging

logger = logging.getLogger(__name__)

METHODES_AUDITEES = ('POST', 'PUT', 'PATCH', 'DELETE')


class AuditLogMiddleware:

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        response = self.get_response(request)

        if request.method in METHODES_AUDITEES:
            # Après la vue : DRF a recopié le membre authentifié par JWT sur request.user
            user = getattr(request, 'user', None)
            auteur = user.email if user is not None and user.is_authenticated else 'Anonyme'
            niveau = logging.WARNING if response.status_code >= 400 else logging.INFO
            logger.log(
                niveau,
                f"[AUDIT] {request.method} | "
                f"URL: {request.path} | "
                f"User: {auteur} | "
                f"Status: {response.status_code}"
            )

        return response
