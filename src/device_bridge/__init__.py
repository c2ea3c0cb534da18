"""balena -> ClearBlade IoT Core device provisioning bridge."""
