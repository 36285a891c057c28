from sandbox_pulumi import create_sandbox

create_sandbox()
