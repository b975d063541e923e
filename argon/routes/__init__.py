from argon.routes import chemicals, healthcheck, jobs, sds

__all__ = ["routers"]

routers = [
    healthcheck.router,
    chemicals.router,
    sds.router,
    jobs.router,
]
